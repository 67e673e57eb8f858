import json
import logging
from typing import Any

from fastapi.openapi.models import OpenAPI
from pydantic import ValidationError

from modelforge.config import CompilerConfig
from modelforge.core.decoration import DecoratedDeclaration
from modelforge.core.registry import Registry
from modelforge.core.shapes import coerce_scalar, scalar_family
from modelforge.emitters.artifact import Artifact
from modelforge.emitters.naming import TypeKey, TypeNamespace
from modelforge.errors import EmissionError
from modelforge.models import Capability, DeclarationKind, FieldSpec, ModelDeclaration, Role, Shape, ShapeKind

logger = logging.getLogger(__name__)

ARTIFACT_PATH = "openapi/openapi.json"
OPENAPI_VERSION = "3.0.3"

_SCALAR_SCHEMAS: dict[str, dict[str, Any]] = {
    "string": {"type": "string"},
    "bool": {"type": "boolean"},
    "int": {"type": "integer", "format": "int32"},
    "bigint": {"type": "integer", "format": "int64"},
    "float": {"type": "number", "format": "double"},
}

_API_ERROR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "kind": {"type": "string", "enum": ["ValidationError", "NotFound"]},
        "details": {"type": "string"},
    },
    "required": ["kind", "details"],
}

_NOT_REQUIRED = frozenset({"Inject", "ReadOnly", "Default"})


def _ref(name: str) -> dict[str, Any]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json_body(name: str) -> dict[str, Any]:
    return {"application/json": {"schema": _ref(name)}}


def _with(schema: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    if not extra:
        return schema
    # siblings of $ref are ignored in OpenAPI 3.0
    if "$ref" in schema:
        return {"allOf": [schema], **extra}
    return {**schema, **extra}


class _SchemaBuilder:
    def __init__(self, namespace: TypeNamespace) -> None:
        self._namespace = namespace

    def shape(self, shape: Shape, owner: ModelDeclaration, field: str) -> dict[str, Any]:
        if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
            return _with(self.shape(shape.item, owner, field), {"nullable": True})
        if shape.kind == ShapeKind.SEQUENCE and shape.item is not None:
            return {"type": "array", "items": self.shape(shape.item, owner, field)}
        if shape.kind == ShapeKind.SCALAR:
            return dict(_SCALAR_SCHEMAS[scalar_family(shape)])
        target = self._namespace.resolve(shape.name, prefer_role=owner.role)
        if target is None:
            raise EmissionError(
                ARTIFACT_PATH, f"{owner.name}.{field} references {shape.name}, which is not schema-exportable"
            )
        return _ref(self._namespace.public_name(target))

    def constraints(self, spec: FieldSpec, owner: ModelDeclaration) -> dict[str, Any]:
        shape = spec.shape.item if spec.shape.kind == ShapeKind.OPTIONAL and spec.shape.item else spec.shape
        sequence = shape.kind == ShapeKind.SEQUENCE
        extra: dict[str, Any] = {}
        for directive in spec.directives:
            if directive.kind == "MinLength":
                extra["minItems" if sequence else "minLength"] = directive.n
            elif directive.kind == "MaxLength":
                extra["maxItems" if sequence else "maxLength"] = directive.n
            elif directive.kind == "Email":
                extra["format"] = "email"
            elif directive.kind == "Url":
                extra["format"] = "uri"
            elif directive.kind == "ReadOnly":
                extra["readOnly"] = True
            elif directive.kind == "Default":
                try:
                    extra["default"] = coerce_scalar(spec.shape, directive.value)
                except ValueError as exc:
                    raise EmissionError(ARTIFACT_PATH, f"{owner.name}.{spec.name}: {exc}") from exc
        return extra

    def declaration(self, declaration: ModelDeclaration) -> dict[str, Any]:
        if declaration.kind == DeclarationKind.ENUM:
            return {"type": "string", "enum": list(declaration.variants)}

        properties: dict[str, Any] = {}
        required: list[str] = []
        for spec in declaration.fields:
            base = self.shape(spec.shape, declaration, spec.name)
            properties[spec.name] = _with(base, self.constraints(spec, declaration))
            if spec.shape.kind != ShapeKind.OPTIONAL and not any(d.kind in _NOT_REQUIRED for d in spec.directives):
                required.append(spec.name)

        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema


def build_schema_document(registry: Registry, config: CompilerConfig) -> dict[str, Any]:
    """Assemble the OpenAPI document for every endpoint and schema-exportable declaration.

    A component name declared under several roles is qualified with its role.
    """
    exported: dict[TypeKey, DecoratedDeclaration] = {
        (decorated.declaration.role, decorated.name): decorated
        for decorated in registry.classified()
        if decorated.has(Capability.SCHEMA_EXPORT)
    }
    try:
        namespace = TypeNamespace(exported)
    except ValueError as exc:
        raise EmissionError(ARTIFACT_PATH, str(exc)) from exc
    builder = _SchemaBuilder(namespace)
    schemas: dict[str, Any] = {"ApiError": _API_ERROR_SCHEMA}
    for key, decorated in exported.items():
        schemas[namespace.public_name(key)] = builder.declaration(decorated.declaration)

    paths: dict[str, Any] = {}
    for endpoint in registry.endpoints:
        contract_key: TypeKey = (Role.API_CONTRACT, endpoint.contract_type_name)
        if contract_key not in namespace:
            raise EmissionError(
                ARTIFACT_PATH,
                f"Endpoint {endpoint.endpoint_name!r} contract {endpoint.contract_type_name} is not exported",
            )
        contract = exported[contract_key].declaration
        success: dict[str, Any] = {"description": "Success"}
        response_key = namespace.resolve(contract.response_type_name, prefer_role=contract.role)
        if response_key is not None:
            success["content"] = _json_body(namespace.public_name(response_key))

        operation: dict[str, Any] = {
            "operationId": endpoint.endpoint_name,
            "requestBody": {"required": True, "content": _json_body(namespace.public_name(contract_key))},
            "responses": {
                "200": success,
                "400": {"description": "Validation error", "content": _json_body("ApiError")},
                "404": {"description": "Unknown endpoint", "content": _json_body("ApiError")},
            },
        }
        if endpoint.access_tags:
            operation["x-access"] = list(endpoint.access_tags)
        paths[f"{config.api_prefix}{endpoint.endpoint_name}"] = {"post": operation}

    document = {
        "openapi": OPENAPI_VERSION,
        "info": {"title": config.api_title, "version": config.api_version},
        "paths": paths,
        "components": {"schemas": schemas},
    }
    try:
        OpenAPI.model_validate(document)
    except ValidationError as exc:
        raise EmissionError(ARTIFACT_PATH, f"Generated document is not valid OpenAPI: {exc}") from exc
    return document


def emit_schema_document(registry: Registry, config: CompilerConfig) -> list[Artifact]:
    document = build_schema_document(registry, config)
    logger.debug(
        "Schema document: %d path(s), %d schema(s)", len(document["paths"]), len(document["components"]["schemas"])
    )
    return [Artifact(ARTIFACT_PATH, json.dumps(document, indent=2) + "\n")]
