from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Role(StrEnum):
    API_CONTRACT = "ApiContract"
    ENTITY = "Entity"
    CACHE_RECORD = "CacheRecord"
    PUSH_EVENT = "PushEvent"
    CLIENT_STATE = "ClientState"
    UNCLASSIFIED = "Unclassified"


class Capability(StrEnum):
    SERIALIZABLE = "serializable"
    CLIENT_CODEC = "client_codec"
    SCHEMA_EXPORT = "schema_export"
    DISPATCH = "dispatch"


class ShapeKind(StrEnum):
    SCALAR = "scalar"
    OPTIONAL = "optional"
    SEQUENCE = "sequence"
    REFERENCE = "reference"


class DeclarationKind(StrEnum):
    STRUCT = "struct"
    ENUM = "enum"


class Shape(BaseModel):
    """Structural description of a field type.

    ``name`` is the scalar name (``String``, ``i64``), the referenced type name,
    or ``Option``/``Vec`` for wrapping kinds, whose element lives in ``item``.
    ``wrapper`` keeps the framework wrapper the type was declared with
    (``DatabaseId``, ``DefaultValue``, ``Timestamp`` ...).
    """

    model_config = ConfigDict(frozen=True)

    kind: ShapeKind
    name: str
    item: "Shape | None" = None
    wrapper: str | None = None

    @property
    def innermost(self) -> "Shape":
        shape = self
        while shape.item is not None:
            shape = shape.item
        return shape

    def referenced_names(self) -> set[str]:
        inner = self.innermost
        return {inner.name} if inner.kind == ShapeKind.REFERENCE else set()


Shape.model_rebuild()  # necessary for recursive types


# --- Validation directives ---


class _Directive(BaseModel):
    model_config = ConfigDict(frozen=True)


class Trim(_Directive):
    kind: Literal["Trim"] = "Trim"


class Required(_Directive):
    kind: Literal["Required"] = "Required"


class MinLength(_Directive):
    kind: Literal["MinLength"] = "MinLength"
    n: int = Field(ge=0)


class MaxLength(_Directive):
    kind: Literal["MaxLength"] = "MaxLength"
    n: int = Field(ge=0)


class Inject(_Directive):
    kind: Literal["Inject"] = "Inject"
    context_field: str


class ReadOnly(_Directive):
    kind: Literal["ReadOnly"] = "ReadOnly"


class Default(_Directive):
    kind: Literal["Default"] = "Default"
    value: str | int | float | bool


class Email(_Directive):
    kind: Literal["Email"] = "Email"


class Url(_Directive):
    kind: Literal["Url"] = "Url"


ValidationDirective = Annotated[
    Union[Trim, Required, MinLength, MaxLength, Inject, ReadOnly, Default, Email, Url],
    Field(discriminator="kind"),
]


class FieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    shape: Shape
    directives: tuple[ValidationDirective, ...] = ()
    dependency_source: str | None = None

    @property
    def shape_kind(self) -> ShapeKind:
        return self.shape.kind

    def directive(self, kind: str) -> _Directive | None:
        for directive in self.directives:
            if directive.kind == kind:
                return directive
        return None

    def has_directive(self, kind: str) -> bool:
        return self.directive(kind) is not None


class ContainerAnnotations(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_path: str | None = None
    bundle_context: str | None = None
    bundle: bool = False
    access_tags: tuple[Literal["Auth", "ExtensionOnly"], ...] = ()


class ModelDeclaration(BaseModel):
    """One discovered struct or enum, classified and parsed.

    ``manually_decorated`` is set by the parser when the author already
    attached capability markers; ``declared_capabilities`` lists them.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    lineage: tuple[str, ...] = ()
    name: str
    kind: DeclarationKind = DeclarationKind.STRUCT
    role: Role
    fields: tuple[FieldSpec, ...] = ()
    variants: tuple[str, ...] = ()
    container: ContainerAnnotations = ContainerAnnotations()
    manually_decorated: bool = False
    declared_capabilities: frozenset[Capability] = frozenset()

    @property
    def is_request_contract(self) -> bool:
        if self.role != Role.API_CONTRACT or self.kind != DeclarationKind.STRUCT:
            return False
        return self.container.route_path is not None or self.name.endswith("Req")

    @property
    def endpoint_name(self) -> str:
        return self.container.route_path or self.name.removesuffix("Req")

    @property
    def response_type_name(self) -> str:
        return f"{self.name.removesuffix('Req')}Res"

    def field(self, name: str) -> FieldSpec | None:
        return next((f for f in self.fields if f.name == name), None)

    def referenced_names(self) -> set[str]:
        names: set[str] = set()
        for f in self.fields:
            names |= f.shape.referenced_names()
        return names


class ValidationContext(BaseModel):
    """Request-scoped values a validation pipeline may read but never change."""

    model_config = ConfigDict(frozen=True)

    host: str = ""
    user_id: str | None = None
    session_id: str | None = None
    is_extension: bool = False


CONTEXT_FIELDS: frozenset[str] = frozenset(ValidationContext.model_fields)
