"""Compile validation directives into ordered executable steps.

Every directive becomes exactly one step and steps run in declaration order,
so ``[Trim, Required]`` and ``[Required, Trim]`` are different pipelines: the
first rejects ``"   "``, the second accepts it and stores ``""``.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from modelforge.core.shapes import coerce_scalar, scalar_family, zero_value
from modelforge.errors import AnnotationParseError, FieldValidationError
from modelforge.models import (
    FieldSpec,
    ModelDeclaration,
    Shape,
    ShapeKind,
    ValidationContext,
    ValidationDirective,
)

Payload = dict[str, Any]


@dataclass
class RunState:
    injected: set[str] = field(default_factory=set)


StepRunner = Callable[[Payload, ValidationContext, RunState], None]


@dataclass(frozen=True)
class ExecutableStep:
    field: str | None
    label: str
    run: StepRunner


@dataclass(frozen=True)
class ValidationPipeline:
    type_name: str
    steps: tuple[ExecutableStep, ...]

    def validate(self, payload: Payload, context: ValidationContext) -> Payload:
        """Run every step against ``payload`` in place.

        Raises ``FieldValidationError`` for the first failing step; the steps
        after it do not run.
        """
        state = RunState()
        for step in self.steps:
            step.run(payload, context, state)
        return payload

    def describe(self) -> list[str]:
        return [f"{step.field}: {step.label}" if step.field else step.label for step in self.steps]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str | list | tuple | dict) and len(value) == 0)


def _is_text(shape: Shape) -> bool:
    target = shape.item if shape.kind == ShapeKind.OPTIONAL and shape.item is not None else shape
    return target.kind == ShapeKind.SCALAR and scalar_family(target) == "string"


def _is_sized(shape: Shape) -> bool:
    target = shape.item if shape.kind == ShapeKind.OPTIONAL and shape.item is not None else shape
    return _is_text(target) or target.kind == ShapeKind.SEQUENCE


def _expect(condition: bool, spec: FieldSpec, directive: ValidationDirective, what: str) -> None:
    if not condition:
        raise AnnotationParseError(f"{directive.kind} on field {spec.name!r} requires {what}")


def _trim(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(_is_text(spec.shape), spec, directive, "a string field")
    name = spec.name

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        value = payload.get(name)
        if isinstance(value, str):
            payload[name] = value.strip()

    return run


def _required(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    name = spec.name

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        if name not in state.injected and _is_empty(payload.get(name)):
            raise FieldValidationError(name, f"{name} is required")

    return run


def _min_length(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(_is_sized(spec.shape), spec, directive, "a string or sequence field")
    name, limit = spec.name, directive.n

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        value = payload.get(name)
        if value is not None and len(value) < limit:
            raise FieldValidationError(name, f"{name} must be at least {limit} characters/items")

    return run


def _max_length(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(_is_sized(spec.shape), spec, directive, "a string or sequence field")
    name, limit = spec.name, directive.n

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        value = payload.get(name)
        if value is not None and len(value) > limit:
            raise FieldValidationError(name, f"{name} must be at most {limit} characters/items")

    return run


def _inject(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    name, source = spec.name, directive.context_field

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        payload[name] = getattr(context, source)
        state.injected.add(name)

    return run


def _read_only(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    name, shape = spec.name, spec.shape

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        payload[name] = zero_value(shape)

    return run


def _default(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(spec.shape.kind != ShapeKind.SEQUENCE, spec, directive, "a non-sequence field")
    try:
        fallback = coerce_scalar(spec.shape, directive.value)
    except ValueError as exc:
        raise AnnotationParseError(f"Default on field {spec.name!r}: {exc}") from exc
    name = spec.name

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        if _is_empty(payload.get(name)):
            payload[name] = fallback

    return run


def _email(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(_is_text(spec.shape), spec, directive, "a string field")
    name = spec.name

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        value = payload.get(name)
        if _is_empty(value):
            return
        valid = value.count("@") == 1 and not value.startswith("@") and not value.endswith("@") and len(value) > 3
        if not valid:
            raise FieldValidationError(name, f"{name} is invalid")

    return run


_URL_SCHEMES = ("http://", "https://", "ftp://")


def _url(spec: FieldSpec, directive: ValidationDirective) -> StepRunner:
    _expect(_is_text(spec.shape), spec, directive, "a string field")
    name = spec.name

    def run(payload: Payload, context: ValidationContext, state: RunState) -> None:
        value = payload.get(name)
        if not _is_empty(value) and not value.startswith(_URL_SCHEMES):
            raise FieldValidationError(name, f"{name} must be a valid URL")

    return run


_STEP_BUILDERS: dict[str, Callable[[FieldSpec, Any], StepRunner]] = {
    "Trim": _trim,
    "Required": _required,
    "MinLength": _min_length,
    "MaxLength": _max_length,
    "Inject": _inject,
    "ReadOnly": _read_only,
    "Default": _default,
    "Email": _email,
    "Url": _url,
}


def _label(directive: ValidationDirective) -> str:
    arguments = directive.model_dump(exclude={"kind"})
    if not arguments:
        return directive.kind
    return f"{directive.kind}({', '.join(repr(value) for value in arguments.values())})"


def compile_field(spec: FieldSpec) -> list[ExecutableStep]:
    """One step per directive, in the order the directives were written."""
    return [
        ExecutableStep(field=spec.name, label=_label(directive), run=_STEP_BUILDERS[directive.kind](spec, directive))
        for directive in spec.directives
    ]


def _require_user(payload: Payload, context: ValidationContext, state: RunState) -> None:
    if context.user_id is None:
        raise FieldValidationError(None, "Unauthorized")


def _require_extension(payload: Payload, context: ValidationContext, state: RunState) -> None:
    if not context.is_extension:
        raise FieldValidationError(None, "This action is only allowed from the extension")


_ACCESS_STEPS: dict[str, StepRunner] = {
    "Auth": _require_user,
    "ExtensionOnly": _require_extension,
}


def compile_declaration(declaration: ModelDeclaration) -> ValidationPipeline:
    """Access-control steps first, then every field's steps in field order."""
    steps = [ExecutableStep(field=None, label=tag, run=_ACCESS_STEPS[tag]) for tag in declaration.container.access_tags]
    for spec in declaration.fields:
        steps.extend(compile_field(spec))
    return ValidationPipeline(type_name=declaration.name, steps=tuple(steps))
