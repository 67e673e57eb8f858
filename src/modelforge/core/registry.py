from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, Protocol

from modelforge.errors import RegistryClosedError, RegistryIntegrityError
from modelforge.models import ModelDeclaration, Role

if TYPE_CHECKING:
    from modelforge.core.decoration import DecoratedDeclaration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointRecord:
    endpoint_name: str
    contract_type_name: str
    bundle_context_type_name: str | None = None
    bundled: bool = False
    access_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContextDependencyRecord:
    declaring_type_name: str
    field_name: str
    source_expression: str


@dataclass(frozen=True)
class TypeCodecRecord:
    """Deferred client codec text for one type; the emitters are only called at emission time.

    Each emitter takes an optional ``names`` mapping from declared to public
    type names, used when the same name is declared under several roles.
    """

    type_name: str
    role: Role
    references: frozenset[str]
    definition_emitter: Callable[..., str]
    encoder_emitter: Callable[..., str]
    decoder_emitter: Callable[..., str]


@dataclass(frozen=True)
class ModelDeclarationRecord:
    decorated: DecoratedDeclaration

    @property
    def declaration(self) -> ModelDeclaration:
        return self.decorated.declaration


RegistryRecord = EndpointRecord | ContextDependencyRecord | TypeCodecRecord | ModelDeclarationRecord


class Registrable(Protocol):
    def register(self, builder: RegistryBuilder) -> None: ...


class RegistryBuilder:
    """Append-only collection phase of the registry.

    ``submit`` may be called from several threads. ``freeze`` ends the
    collection phase; nothing can be submitted afterwards.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._closed = False
        self._records: dict[type, list[RegistryRecord]] = {
            EndpointRecord: [],
            ContextDependencyRecord: [],
            TypeCodecRecord: [],
            ModelDeclarationRecord: [],
        }

    def submit(self, record: RegistryRecord) -> None:
        with self._lock:
            if self._closed:
                raise RegistryClosedError(f"Registry is frozen; cannot submit {type(record).__name__}")
            self._records[type(record)].append(record)

    def freeze(self) -> Registry:
        with self._lock:
            self._closed = True
            registry = Registry(
                endpoints=tuple(self._records[EndpointRecord]),  # type: ignore[arg-type]
                context_dependencies=tuple(self._records[ContextDependencyRecord]),  # type: ignore[arg-type]
                type_codecs=tuple(self._records[TypeCodecRecord]),  # type: ignore[arg-type]
                declarations=tuple(self._records[ModelDeclarationRecord]),  # type: ignore[arg-type]
            )
        logger.info(
            "Registry frozen: %d declaration(s), %d endpoint(s), %d codec(s), %d context dependenc(ies)",
            len(registry.declarations),
            len(registry.endpoints),
            len(registry.type_codecs),
            len(registry.context_dependencies),
        )
        return registry


@dataclass(frozen=True)
class Registry:
    endpoints: tuple[EndpointRecord, ...] = ()
    context_dependencies: tuple[ContextDependencyRecord, ...] = ()
    type_codecs: tuple[TypeCodecRecord, ...] = ()
    declarations: tuple[ModelDeclarationRecord, ...] = ()

    @classmethod
    def build(cls, declarations: Iterable[Registrable]) -> Registry:
        builder = RegistryBuilder()
        for declaration in declarations:
            declaration.register(builder)
        return builder.freeze()

    def verify(self) -> None:
        """Check catalog invariants. Raises ``RegistryIntegrityError`` on the first violation."""
        seen: dict[str, EndpointRecord] = {}
        for endpoint in self.endpoints:
            first = seen.setdefault(endpoint.endpoint_name, endpoint)
            if first is not endpoint:
                raise RegistryIntegrityError(
                    f"Endpoint {endpoint.endpoint_name!r} is declared by both "
                    f"{first.contract_type_name} and {endpoint.contract_type_name}"
                )

        per_contract = Counter(endpoint.contract_type_name for endpoint in self.endpoints)
        for record in self.declarations:
            declaration = record.declaration
            if declaration.is_request_contract and per_contract[declaration.name] != 1:
                raise RegistryIntegrityError(
                    f"Request contract {declaration.name} ({declaration.path}) produced "
                    f"{per_contract[declaration.name]} endpoint record(s), expected exactly 1"
                )

        by_role: dict[tuple[Role, str], ModelDeclaration] = {}
        for record in self.declarations:
            declaration = record.declaration
            if declaration.role == Role.UNCLASSIFIED:
                continue
            first_declaration = by_role.setdefault((declaration.role, declaration.name), declaration)
            if first_declaration is not declaration:
                raise RegistryIntegrityError(
                    f"{declaration.role} {declaration.name!r} is declared twice: "
                    f"{first_declaration.path} and {declaration.path}"
                )

    @cached_property
    def _endpoints_by_name(self) -> dict[str, EndpointRecord]:
        return {endpoint.endpoint_name: endpoint for endpoint in self.endpoints}

    @cached_property
    def _codecs_by_name(self) -> dict[str, TypeCodecRecord]:
        return {codec.type_name: codec for codec in self.type_codecs}

    def endpoint(self, name: str) -> EndpointRecord | None:
        return self._endpoints_by_name.get(name)

    def codec(self, type_name: str) -> TypeCodecRecord | None:
        return self._codecs_by_name.get(type_name)

    def dependencies_of(self, type_name: str) -> tuple[ContextDependencyRecord, ...]:
        return tuple(dep for dep in self.context_dependencies if dep.declaring_type_name == type_name)

    def classified(self) -> list[DecoratedDeclaration]:
        return [record.decorated for record in self.declarations if record.declaration.role != Role.UNCLASSIFIED]

    def resolve(self, name: str, prefer_role: Role | None = None) -> DecoratedDeclaration | None:
        """Find the classified declaration called ``name``, preferring ``prefer_role`` when several roles share it."""
        candidates = [decorated for decorated in self.classified() if decorated.declaration.name == name]
        for decorated in candidates:
            if decorated.declaration.role == prefer_role:
                return decorated
        return candidates[0] if candidates else None
