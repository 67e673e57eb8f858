"""Tests for compiled validation pipelines."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from modelforge.core.shapes import parse_shape
from modelforge.core.validation import compile_declaration, compile_field
from modelforge.errors import AnnotationParseError, FieldValidationError
from modelforge.models import (
    ContainerAnnotations,
    Default,
    Email,
    FieldSpec,
    Inject,
    MaxLength,
    MinLength,
    ModelDeclaration,
    ReadOnly,
    Required,
    Role,
    Trim,
    Url,
    ValidationContext,
    ValidationDirective,
)

_CONTEXT = ValidationContext(host="example.com")


def _declaration(*fields: FieldSpec, access: tuple[Any, ...] = ()) -> ModelDeclaration:
    return ModelDeclaration(
        path=Path("api/x.rs"),
        name="SubmitItemReq",
        role=Role.API_CONTRACT,
        fields=fields,
        container=ContainerAnnotations(route_path="SubmitItem", access_tags=access),
    )


def _field(name: str, type_text: str, *directives: ValidationDirective) -> FieldSpec:
    return FieldSpec(name=name, shape=parse_shape(type_text), directives=directives)


def _run(spec: FieldSpec, value: Any, context: ValidationContext = _CONTEXT) -> dict[str, Any]:
    payload = {spec.name: value}
    compile_declaration(_declaration(spec)).validate(payload, context)
    return payload


class TestOrdering:
    def test_trim_then_required_rejects_blank(self) -> None:
        spec = _field("title", "String", Trim(), Required())

        with pytest.raises(FieldValidationError, match="title is required"):
            _run(spec, "   ")

    def test_required_then_trim_accepts_blank(self) -> None:
        spec = _field("title", "String", Required(), Trim())

        assert _run(spec, "   ") == {"title": ""}

    def test_one_step_per_directive_in_order(self) -> None:
        spec = _field("title", "String", Required(), Trim(), MaxLength(n=100))

        assert [step.label for step in compile_field(spec)] == ["Required", "Trim", "MaxLength(100)"]


class TestSubmitItem:
    def test_tags_bound_fails_after_title_passes(self) -> None:
        pipeline = compile_declaration(
            _declaration(
                _field("title", "String", Required(), Trim(), MaxLength(n=100)),
                _field("tags", "Vec<String>", MaxLength(n=10)),
            )
        )
        payload = {"title": "  Hello  ", "tags": [str(i) for i in range(1, 12)]}

        with pytest.raises(FieldValidationError) as exc_info:
            pipeline.validate(payload, _CONTEXT)

        assert exc_info.value.message == "tags must be at most 10 characters/items"
        assert exc_info.value.field == "tags"
        assert payload["title"] == "Hello"

    def test_valid_payload_passes(self) -> None:
        pipeline = compile_declaration(
            _declaration(
                _field("title", "String", Required(), Trim(), MaxLength(n=100)),
                _field("tags", "Vec<String>", MaxLength(n=10)),
            )
        )

        assert pipeline.validate({"title": " Hi ", "tags": ["a"]}, _CONTEXT) == {"title": "Hi", "tags": ["a"]}


class TestLengthBounds:
    def test_min_length(self) -> None:
        spec = _field("name", "String", MinLength(n=3))

        with pytest.raises(FieldValidationError, match="name must be at least 3 characters/items"):
            _run(spec, "ab")

    def test_missing_optional_value_is_not_checked(self) -> None:
        spec = _field("name", "Option<String>", MinLength(n=3), MaxLength(n=5))

        assert _run(spec, None) == {"name": None}

    @pytest.mark.parametrize(
        ("directive", "type_text", "value"),
        [
            (MinLength(n=2), "String", "abc"),
            (MaxLength(n=5), "Vec<i32>", [1, 2]),
            (Email(), "String", "ada@example.com"),
            (Url(), "String", "https://example.com"),
        ],
    )
    def test_checks_are_idempotent(self, directive: ValidationDirective, type_text: str, value: Any) -> None:
        spec = _field("value", type_text, directive, directive)

        assert _run(spec, value) == {"value": value}


class TestFormats:
    @pytest.mark.parametrize("value", ["@example.com", "ada@", "a@b@c.com", "a@b"])
    def test_invalid_email(self, value: str) -> None:
        with pytest.raises(FieldValidationError, match="email is invalid"):
            _run(_field("email", "String", Email()), value)

    def test_empty_email_is_left_to_required(self) -> None:
        assert _run(_field("email", "String", Email()), "") == {"email": ""}

    @pytest.mark.parametrize("value", ["example.com", "mailto:ada@example.com", "javascript:alert(1)"])
    def test_invalid_url(self, value: str) -> None:
        with pytest.raises(FieldValidationError, match="link must be a valid URL"):
            _run(_field("link", "String", Url()), value)

    @pytest.mark.parametrize("value", ["http://a.io", "https://a.io/x?y=1", "ftp://files.a.io"])
    def test_valid_url(self, value: str) -> None:
        assert _run(_field("link", "String", Url()), value) == {"link": value}


class TestContextAndDefaults:
    def test_inject_overrides_caller_value(self) -> None:
        spec = _field("host", "String", Inject(context_field="host"))

        assert _run(spec, "attacker.example") == {"host": "example.com"}

    def test_injected_field_satisfies_required(self) -> None:
        spec = _field("user_id", "Option<String>", Inject(context_field="user_id"), Required())

        assert _run(spec, None) == {"user_id": None}

    def test_read_only_resets_to_zero_value(self) -> None:
        assert _run(_field("score", "i32", ReadOnly()), 99) == {"score": 0}
        assert _run(_field("tags", "Vec<String>", ReadOnly()), ["x"]) == {"tags": []}

    def test_default_fills_missing_value(self) -> None:
        spec = _field("limit", "i32", Default(value="20"))

        assert _run(spec, None) == {"limit": 20}
        assert _run(spec, 5) == {"limit": 5}

    def test_default_is_checked_at_compile_time(self) -> None:
        spec = _field("limit", "i32", Default(value="twenty"))

        with pytest.raises(AnnotationParseError, match="Default on field 'limit'"):
            compile_field(spec)

    def test_trim_on_number_is_a_compile_error(self) -> None:
        with pytest.raises(AnnotationParseError, match="Trim on field 'count' requires a string field"):
            compile_field(_field("count", "i32", Trim()))


class TestAccessSteps:
    def test_auth_requires_user(self) -> None:
        pipeline = compile_declaration(_declaration(access=("Auth",)))

        with pytest.raises(FieldValidationError, match="Unauthorized"):
            pipeline.validate({}, _CONTEXT)
        assert pipeline.validate({}, ValidationContext(user_id="u1")) == {}

    def test_extension_only(self) -> None:
        pipeline = compile_declaration(_declaration(access=("ExtensionOnly",)))

        with pytest.raises(FieldValidationError, match="only allowed from the extension"):
            pipeline.validate({}, _CONTEXT)
        assert pipeline.validate({}, ValidationContext(is_extension=True)) == {}

    def test_access_runs_before_fields(self) -> None:
        pipeline = compile_declaration(_declaration(_field("title", "String", Required()), access=("Auth",)))

        assert pipeline.describe() == ["Auth", "title: Required"]
        with pytest.raises(FieldValidationError, match="Unauthorized"):
            pipeline.validate({"title": ""}, _CONTEXT)
