import logging
import re
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Identity,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import DOUBLE_PRECISION, JSONB
from sqlalchemy.schema import CreateIndex, CreateTable

from modelforge.config import CompilerConfig
from modelforge.core.registry import Registry
from modelforge.core.shapes import coerce_scalar, scalar_family
from modelforge.emitters.artifact import Artifact
from modelforge.errors import EmissionError
from modelforge.models import DeclarationKind, FieldSpec, ModelDeclaration, Role, Shape, ShapeKind

logger = logging.getLogger(__name__)

ARTIFACT_PATH = "sql/schema.sql"

_SQL_TYPES: dict[str, Any] = {
    "string": Text,
    "bool": Boolean,
    "int": Integer,
    "bigint": BigInteger,
    "float": DOUBLE_PRECISION,
}

_ZERO_DEFAULTS: dict[str, str | None] = {
    "string": None,
    "bool": "false",
    "int": "0",
    "bigint": "0",
    "float": "0",
}

_EPOCH_NOW = "extract(epoch from now())"
_TENANT_COLUMNS = frozenset({"host"})


def _snake(name: str) -> str:
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name).lower()


def _plural(word: str) -> str:
    if word.endswith("y") and word[-2:-1] not in ("a", "e", "i", "o", "u"):
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def table_name(type_name: str) -> str:
    """``MicroblogItem`` -> ``microblog_items``."""
    return _plural(_snake(type_name))


def sql_literal(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return "'" + value.replace("'", "''") + "'"


class _TableBuilder:
    def __init__(self, registry: Registry, declaration: ModelDeclaration) -> None:
        self._registry = registry
        self._declaration = declaration
        self.name = table_name(declaration.name)
        self.checks: list[CheckConstraint] = []
        self.tenant_columns: list[str] = []

    def _enum_variants(self, shape: Shape, field: str) -> tuple[str, ...] | None:
        target = self._registry.resolve(shape.name, prefer_role=self._declaration.role)
        if target is None:
            raise EmissionError(
                ARTIFACT_PATH, f"{self._declaration.name}.{field} references unknown type {shape.name}"
            )
        if target.declaration.kind == DeclarationKind.ENUM:
            return target.declaration.variants
        return None

    def _value_type(self, shape: Shape, field: str) -> Any:
        """Column type for a non-optional shape; records enum checks on the way."""
        if shape.kind == ShapeKind.SEQUENCE:
            return JSONB
        if shape.kind == ShapeKind.REFERENCE:
            variants = self._enum_variants(shape, field)
            if variants is None:
                return JSONB
            if variants:
                allowed = ", ".join(sql_literal(variant) for variant in variants)
                self.checks.append(CheckConstraint(f"{field} IN ({allowed})", name=f"ck_{self.name}_{field}"))
            return Text
        return _SQL_TYPES[scalar_family(shape)]

    def column(self, spec: FieldSpec) -> Column:
        shape, name = spec.shape, spec.name
        if shape.wrapper == "MultiTenant" or name in _TENANT_COLUMNS:
            self.tenant_columns.append(name)

        if shape.wrapper == "DatabaseId":
            if scalar_family(shape.innermost) == "string":
                return Column(name, Text, primary_key=True, server_default=text("gen_random_uuid()"))
            return Column(name, BigInteger, Identity(), primary_key=True)
        if shape.wrapper in ("Timestamp", "CreateTimestamp"):
            return Column(name, BigInteger, nullable=False, server_default=text(_EPOCH_NOW))
        if shape.wrapper == "JsonBlob":
            return Column(name, JSONB, nullable=False)
        if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
            return Column(name, self._value_type(shape.item, name), nullable=True)
        if shape.kind == ShapeKind.SEQUENCE:
            return Column(name, JSONB, nullable=False, server_default=text("'[]'::jsonb"))

        column_type = self._value_type(shape, name)
        default = self._default(spec) if shape.kind == ShapeKind.SCALAR else None
        if default is None:
            return Column(name, column_type, nullable=False)
        return Column(name, column_type, nullable=False, server_default=text(default))

    def _default(self, spec: FieldSpec) -> str | None:
        family = scalar_family(spec.shape)
        directive = spec.directive("Default")
        if directive is not None:
            try:
                return sql_literal(coerce_scalar(spec.shape, directive.value))
            except ValueError as exc:
                raise EmissionError(ARTIFACT_PATH, f"{self._declaration.name}.{spec.name}: {exc}") from exc
        if spec.shape.wrapper == "DefaultValue" and family == "string":
            return "''"
        return _ZERO_DEFAULTS[family]


def _entity_table(registry: Registry, declaration: ModelDeclaration, metadata: MetaData) -> list[str]:
    builder = _TableBuilder(registry, declaration)
    name = builder.name
    columns = [builder.column(spec) for spec in declaration.fields]
    table = Table(name, metadata, *columns, *builder.checks)
    indexes = [Index(f"idx_{name}_{column}", table.c[column]) for column in builder.tenant_columns]

    dialect = postgresql.dialect()
    statements = [str(CreateTable(table).compile(dialect=dialect)).strip() + ";"]
    statements.extend(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";" for index in indexes)
    return [f"-- {declaration.name} ({'/'.join((*declaration.lineage, declaration.path.name))})", *statements]


def emit_storage_ddl(registry: Registry, config: CompilerConfig) -> list[Artifact]:
    """One CREATE TABLE per entity struct, plus tenant indexes."""
    entities = [
        decorated.declaration
        for decorated in registry.classified()
        if decorated.declaration.role == Role.ENTITY and decorated.declaration.kind == DeclarationKind.STRUCT
    ]

    seen: dict[str, str] = {}
    for declaration in entities:
        name = table_name(declaration.name)
        if name in seen:
            raise EmissionError(ARTIFACT_PATH, f"{seen[name]} and {declaration.name} both map to table {name}")
        seen[name] = declaration.name

    metadata = MetaData()
    blocks = [f"-- Generated by modelforge from {len(entities)} entity declaration(s)"]
    for declaration in entities:
        blocks.append("\n".join(_entity_table(registry, declaration, metadata)))
    logger.debug("Storage DDL: %d table(s)", len(entities))
    return [Artifact(ARTIFACT_PATH, "\n\n".join(blocks) + "\n")]
