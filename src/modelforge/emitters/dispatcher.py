"""Request dispatcher: one route per registered endpoint.

Each route decodes the raw payload with a pydantic model generated from the
contract declaration, hydrates context dependencies, runs the compiled
validation pipeline and hands the validated payload to the forward callable.
Request-level problems come back as ``DispatchResult`` errors; ``dispatch``
never raises for them.
"""

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from modelforge.config import CompilerConfig
from modelforge.core.registry import ContextDependencyRecord, EndpointRecord, Registry
from modelforge.core.shapes import scalar_family
from modelforge.core.validation import ValidationPipeline
from modelforge.emitters.artifact import Artifact
from modelforge.errors import EmissionError, FieldValidationError
from modelforge.models import DeclarationKind, ModelDeclaration, Role, Shape, ShapeKind, ValidationContext

logger = logging.getLogger(__name__)

ARTIFACT_PATH = "dispatcher/routes.json"

Forwarder = Callable[[EndpointRecord, dict[str, Any], ValidationContext], Any]
Hydrator = Callable[[ContextDependencyRecord, dict[str, Any], ValidationContext], Any]

_SCALAR_ANNOTATIONS: dict[str, Any] = {
    "string": StrictStr,
    "bool": StrictBool,
    "int": StrictInt,
    "bigint": StrictInt,
    "float": StrictInt | StrictFloat,
}

# Fields the pipeline fills in itself may be left out of the request.
_FILLED_BY_PIPELINE = frozenset({"Inject", "ReadOnly", "Default"})


class ApiError(BaseModel):
    kind: Literal["ValidationError", "NotFound"]
    details: str


class DispatchResult(BaseModel):
    endpoint: str
    payload: Any = None
    error: ApiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def forward_payload(endpoint: EndpointRecord, payload: dict[str, Any], context: ValidationContext) -> Any:
    return payload


@dataclass(frozen=True)
class Route:
    endpoint: EndpointRecord
    request_model: type[BaseModel]
    pipeline: ValidationPipeline
    dependencies: tuple[ContextDependencyRecord, ...] = ()

    def decode(self, payload: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(payload, str | bytes):
            request = self.request_model.model_validate_json(payload)
        else:
            request = self.request_model.model_validate(payload)
        return request.model_dump(by_alias=True)


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]


class Dispatcher:
    def __init__(
        self,
        routes: Mapping[str, Route],
        forward: Forwarder | None = None,
        hydrate: Hydrator | None = None,
    ) -> None:
        self._routes = dict(routes)
        self._forward = forward or forward_payload
        self._hydrate = hydrate

    @property
    def endpoints(self) -> list[str]:
        return list(self._routes)

    def route(self, endpoint: str) -> Route | None:
        return self._routes.get(endpoint)

    def dispatch(
        self,
        endpoint: str,
        payload: str | bytes | Mapping[str, Any],
        context: ValidationContext | Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        route = self._routes.get(endpoint)
        if route is None:
            not_found = ApiError(kind="NotFound", details=f"Unknown endpoint: {endpoint}")
            return DispatchResult(endpoint=endpoint, error=not_found)

        ctx = context if isinstance(context, ValidationContext) else ValidationContext.model_validate(context or {})

        try:
            data = route.decode(payload)
        except ValidationError as exc:
            logger.debug("Rejected %s request: %s", endpoint, exc)
            return DispatchResult(
                endpoint=endpoint,
                error=ApiError(kind="ValidationError", details=f"Invalid request: {_describe(exc)}"),
            )

        if self._hydrate is not None:
            for dependency in route.dependencies:
                data[dependency.field_name] = self._hydrate(dependency, data, ctx)

        try:
            route.pipeline.validate(data, ctx)
        except FieldValidationError as exc:
            return DispatchResult(endpoint=endpoint, error=ApiError(kind="ValidationError", details=exc.message))

        return DispatchResult(endpoint=endpoint, payload=self._forward(route.endpoint, data, ctx))

    def manifest(self) -> dict[str, Any]:
        return {
            "endpoints": [
                {
                    "name": name,
                    "contract": route.endpoint.contract_type_name,
                    "bundle_context": route.endpoint.bundle_context_type_name,
                    "bundled": route.endpoint.bundled,
                    "access": list(route.endpoint.access_tags),
                    "steps": route.pipeline.describe(),
                    "context_dependencies": [
                        {"field": dep.field_name, "source": dep.source_expression} for dep in route.dependencies
                    ],
                }
                for name, route in self._routes.items()
            ]
        }


class _RequestModels:
    """Builds pydantic request models from declarations, resolving references through the registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry
        self._models: dict[tuple[Role, str], type[BaseModel]] = {}
        self._building: set[tuple[Role, str]] = set()

    def model_for(self, declaration: ModelDeclaration) -> type[BaseModel]:
        key = (declaration.role, declaration.name)
        if key in self._models:
            return self._models[key]

        self._building.add(key)
        fields: dict[str, Any] = {}
        for index, spec in enumerate(declaration.fields):
            annotation = self._annotation(spec.shape, declaration, spec.name)
            lenient = spec.shape.kind == ShapeKind.OPTIONAL or any(
                directive.kind in _FILLED_BY_PIPELINE for directive in spec.directives
            )
            if lenient:
                fields[f"field_{index}"] = (Optional[annotation], Field(default=None, alias=spec.name))
            else:
                fields[f"field_{index}"] = (annotation, Field(alias=spec.name))
        self._building.discard(key)

        model = create_model(declaration.name, **fields)
        self._models[key] = model
        return model

    def _annotation(self, shape: Shape, owner: ModelDeclaration, field: str) -> Any:
        if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
            return Optional[self._annotation(shape.item, owner, field)]
        if shape.kind == ShapeKind.SEQUENCE and shape.item is not None:
            return list[self._annotation(shape.item, owner, field)]  # type: ignore[misc]
        if shape.kind == ShapeKind.SCALAR:
            return _SCALAR_ANNOTATIONS[scalar_family(shape)]

        target = self._registry.resolve(shape.name, prefer_role=owner.role)
        if target is None:
            raise EmissionError(ARTIFACT_PATH, f"{owner.name}.{field} references unknown type {shape.name}")
        referenced = target.declaration
        if referenced.kind == DeclarationKind.ENUM:
            return Literal[tuple(referenced.variants)] if referenced.variants else StrictStr
        if (referenced.role, referenced.name) in self._building:
            # recursive reference, decoded as a plain object
            return dict[str, Any]
        return self.model_for(referenced)


def build_dispatcher(
    registry: Registry,
    forward: Forwarder | None = None,
    hydrate: Hydrator | None = None,
) -> Dispatcher:
    models = _RequestModels(registry)
    routes: dict[str, Route] = {}
    for endpoint in registry.endpoints:
        contract = registry.resolve(endpoint.contract_type_name, prefer_role=Role.API_CONTRACT)
        if contract is None or contract.pipeline is None:
            raise EmissionError(ARTIFACT_PATH, f"Endpoint {endpoint.endpoint_name!r} has no dispatchable contract")
        routes[endpoint.endpoint_name] = Route(
            endpoint=endpoint,
            request_model=models.model_for(contract.declaration),
            pipeline=contract.pipeline,
            dependencies=registry.dependencies_of(endpoint.contract_type_name),
        )
    logger.debug("Built dispatcher with %d route(s)", len(routes))
    return Dispatcher(routes, forward=forward, hydrate=hydrate)


def emit_dispatcher(registry: Registry, config: CompilerConfig) -> list[Artifact]:
    dispatcher = build_dispatcher(registry)
    return [Artifact(ARTIFACT_PATH, json.dumps(dispatcher.manifest(), indent=2) + "\n")]
