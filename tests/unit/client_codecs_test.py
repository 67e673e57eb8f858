"""Tests for the Elm client codec emitter."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from modelforge.codecs import elm
from modelforge.config import CompilerConfig
from modelforge.core.compiler import collect_declarations
from modelforge.core.registry import Registry
from modelforge.core.shapes import parse_shape
from modelforge.emitters.client_codecs import emit_client_codecs
from modelforge.errors import EmissionError
from modelforge.models import DeclarationKind, FieldSpec, ModelDeclaration, Role

MakeModels = Callable[[dict[str, str]], Path]


def _modules(registry: Registry, config: CompilerConfig) -> dict[str, str]:
    return {artifact.path: artifact.content for artifact in emit_client_codecs(registry, config)}


class TestElmCodec:
    def test_record_definition_encoder_decoder(self) -> None:
        declaration = ModelDeclaration(
            path=Path("api/x.rs"),
            name="SubmitItemReq",
            role=Role.API_CONTRACT,
            fields=(
                FieldSpec(name="title", shape=parse_shape("String")),
                FieldSpec(name="due_at", shape=parse_shape("Option<i64>")),
                FieldSpec(name="type", shape=parse_shape("Vec<Tag>")),
            ),
        )

        assert elm.definition(declaration) == (
            "type alias SubmitItemReq =\n"
            "    { title : String\n"
            "    , dueAt : Maybe Int\n"
            "    , type_ : List Tag\n"
            "    }"
        )
        encoder = elm.encoder(declaration)
        assert '( "due_at", (Maybe.withDefault Json.Encode.null << Maybe.map Json.Encode.int) struct.dueAt )' in encoder
        assert '( "type", (Json.Encode.list tagEncoder) struct.type_ )' in encoder
        decoder = elm.decoder(declaration)
        assert decoder.splitlines()[:3] == [
            "submitItemReqDecoder : Json.Decode.Decoder SubmitItemReq",
            "submitItemReqDecoder =",
            "    Json.Decode.succeed SubmitItemReq",
        ]
        assert '|> andMap (Json.Decode.field "due_at" (Json.Decode.nullable Json.Decode.int))' in decoder

    def test_enum(self) -> None:
        declaration = ModelDeclaration(
            path=Path("db/x.rs"),
            name="ItemStatus",
            role=Role.ENTITY,
            kind=DeclarationKind.ENUM,
            variants=("Draft", "Published"),
        )

        assert elm.definition(declaration) == "type ItemStatus\n    = Draft\n    | Published"
        assert 'Json.Encode.string "Published"' in elm.encoder(declaration)
        assert 'Json.Decode.fail <| "Unexpected ItemStatus variant: " ++ unexpected' in elm.decoder(declaration)


class TestEmitClientCodecs:
    def test_backend_has_every_codec_without_transport(self, sample_registry: Registry, config: CompilerConfig) -> None:
        backend = _modules(sample_registry, config)["elm/Api/Backend.elm"]

        assert backend.startswith("module Api.Backend exposing (..)")
        assert "import Http" not in backend
        assert "import Url.Builder" not in backend
        assert "import Json.Decode" in backend
        for name in ["SubmitItemReq", "GetFeedRes", "MicroblogItem", "ItemStatus", "AuditLog", "Preferences"]:
            assert f"{elm.decoder_name(name)} : Json.Decode.Decoder {name}" in backend
        assert "ItemPublishedEvent" not in backend

    def test_client_module_keeps_reachable_types(self, sample_registry: Registry, config: CompilerConfig) -> None:
        client = _modules(sample_registry, config)["elm/Api/Schema.elm"]

        assert client.startswith("module Api.Schema exposing (..)")
        assert "import Http" in client
        for name in ["SubmitItemReq", "GetFeedRes", "MicroblogItem", "ItemStatus", "Preferences"]:
            assert f"type alias {name} =" in client or f"type {name}\n" in client
        assert "AuditLog" not in client

    def test_bundle_records(self, make_models: MakeModels, config: CompilerConfig) -> None:
        root = make_models(
            {
                "api/comment.rs": """
                    #[api(server_context = "CommentContext")]
                    pub struct PostCommentReq { pub body: String }

                    pub struct CommentContext { pub thread_title: String }
                """
            }
        )
        declarations, _ = collect_declarations(root, config)

        backend = _modules(Registry.build(declarations), config)["elm/Api/Backend.elm"]

        assert "type alias ServerContext =" in backend
        assert (
            "type alias PostCommentBundle =\n"
            "    { context : ServerContext\n"
            "    , input : PostCommentReq\n"
            "    , data : CommentContext\n"
            "    }"
        ) in backend

    def test_missing_codec_reference(self, make_models: MakeModels, config: CompilerConfig) -> None:
        root = make_models(
            {
                "api/ping.rs": "pub struct PingReq { pub event: PingEvent }",
                "events/ping.rs": "pub struct PingEvent {}",
            }
        )
        declarations, _ = collect_declarations(root, config)

        with pytest.raises(EmissionError, match="PingReq references PingEvent without a client codec"):
            emit_client_codecs(Registry.build(declarations), config)
