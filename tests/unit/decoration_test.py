"""Tests for capability synthesis and registration."""

from __future__ import annotations

from pathlib import Path

import pytest

from modelforge.core.decoration import CAPABILITY_TABLE, decorate
from modelforge.core.registry import EndpointRecord, RegistryBuilder
from modelforge.core.shapes import parse_shape
from modelforge.errors import AnnotationParseError
from modelforge.models import (
    Capability,
    ContainerAnnotations,
    DeclarationKind,
    FieldSpec,
    ModelDeclaration,
    Role,
    Trim,
)


def _declaration(name: str, role: Role, **kwargs: object) -> ModelDeclaration:
    return ModelDeclaration(path=Path(f"models/{name}.rs"), name=name, role=role, **kwargs)  # type: ignore[arg-type]


class TestDecorate:
    @pytest.mark.parametrize("role", [role for role in Role if role != Role.API_CONTRACT])
    def test_non_contract_roles_get_table_capabilities(self, role: Role) -> None:
        decorated = decorate(_declaration("Thing", role))

        assert decorated.capabilities == CAPABILITY_TABLE[role]
        assert decorated.pipeline is None

    def test_request_contract_gets_dispatch_and_pipeline(self) -> None:
        decorated = decorate(_declaration("SubmitItemReq", Role.API_CONTRACT))

        assert decorated.has(Capability.DISPATCH)
        assert decorated.pipeline is not None
        assert decorated.pipeline.type_name == "SubmitItemReq"

    def test_response_contract_does_not_dispatch(self) -> None:
        decorated = decorate(_declaration("SubmitItemRes", Role.API_CONTRACT))

        assert not decorated.has(Capability.DISPATCH)
        assert decorated.has(Capability.SCHEMA_EXPORT)

    def test_contract_enum_does_not_dispatch(self) -> None:
        decorated = decorate(
            _declaration("SortReq", Role.API_CONTRACT, kind=DeclarationKind.ENUM, variants=("Asc", "Desc"))
        )

        assert not decorated.has(Capability.DISPATCH)

    def test_manual_decoration_is_not_doubled(self) -> None:
        decorated = decorate(
            _declaration(
                "Settings",
                Role.ENTITY,
                manually_decorated=True,
                declared_capabilities=frozenset({Capability.SERIALIZABLE}),
            )
        )

        assert decorated.capabilities == frozenset({Capability.SERIALIZABLE})

    def test_directive_mistakes_fail_at_decoration(self) -> None:
        bad = FieldSpec(name="count", shape=parse_shape("i32"), directives=(Trim(),))

        with pytest.raises(AnnotationParseError):
            decorate(_declaration("CountReq", Role.API_CONTRACT, fields=(bad,)))


class TestRegister:
    def test_contract_submits_endpoint_codec_and_dependencies(self) -> None:
        declaration = _declaration(
            "SubmitItemReq",
            Role.API_CONTRACT,
            fields=(FieldSpec(name="existing", shape=parse_shape("Option<Item>"), dependency_source="items.by_id"),),
            container=ContainerAnnotations(route_path="Submit", bundle_context="ItemContext", access_tags=("Auth",)),
        )
        builder = RegistryBuilder()
        decorate(declaration).register(builder)
        registry = builder.freeze()

        assert registry.endpoints == (
            EndpointRecord(
                endpoint_name="Submit",
                contract_type_name="SubmitItemReq",
                bundle_context_type_name="ItemContext",
                bundled=True,
                access_tags=("Auth",),
            ),
        )
        assert [codec.type_name for codec in registry.type_codecs] == ["SubmitItemReq"]
        assert registry.type_codecs[0].references == frozenset({"Item"})
        (dependency,) = registry.dependencies_of("SubmitItemReq")
        assert (dependency.field_name, dependency.source_expression) == ("existing", "items.by_id")

    def test_codec_thunks_are_deferred(self) -> None:
        builder = RegistryBuilder()
        decorate(_declaration("Preferences", Role.CLIENT_STATE)).register(builder)
        (codec,) = builder.freeze().type_codecs

        assert codec.definition_emitter().startswith("type alias Preferences =")
        assert codec.encoder_emitter().startswith("preferencesEncoder : Preferences -> Json.Encode.Value")
        assert codec.decoder_emitter().startswith("preferencesDecoder : Json.Decode.Decoder Preferences")

    def test_push_event_has_no_codec(self) -> None:
        builder = RegistryBuilder()
        decorate(_declaration("ItemPublishedEvent", Role.PUSH_EVENT)).register(builder)
        registry = builder.freeze()

        assert registry.type_codecs == ()
        assert len(registry.declarations) == 1
