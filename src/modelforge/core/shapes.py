import re
from typing import Any, Literal

from modelforge.errors import AnnotationParseError
from modelforge.models import Shape, ShapeKind

ScalarFamily = Literal["string", "bool", "int", "bigint", "float"]

_SCALAR_FAMILIES: dict[str, ScalarFamily] = {
    "String": "string",
    "str": "string",
    "char": "string",
    "bool": "bool",
    "i8": "int",
    "i16": "int",
    "i32": "int",
    "u8": "int",
    "u16": "int",
    "u32": "bigint",
    "i64": "bigint",
    "u64": "bigint",
    "i128": "bigint",
    "u128": "bigint",
    "isize": "bigint",
    "usize": "bigint",
    "f32": "float",
    "f64": "float",
}

# Framework wrappers that take exactly one type argument.
_GENERIC_WRAPPERS = frozenset({"DatabaseId", "DefaultValue", "Link", "JsonBlob", "CorrelationId", "ExecuteAt"})

# Framework scalars written without type arguments, with their underlying scalar.
_NAMED_SCALARS: dict[str, str] = {
    "Timestamp": "i64",
    "CreateTimestamp": "i64",
    "MultiTenant": "String",
    "RichContent": "String",
    "DateTime": "String",
}

# Framework types that are nullable integers.
_NAMED_OPTIONALS = frozenset({"UpdateTimestamp", "SoftDelete"})

_WHITESPACE = re.compile(r"\s+")


def parse_shape(type_text: str) -> Shape:
    """Parse a Rust field type such as ``Option<Vec<crate::models::Tag>>`` into a ``Shape``."""
    return _parse(_WHITESPACE.sub("", type_text), type_text)


def _parse(text: str, original: str) -> Shape:
    if not text or text[0] in "&([*" or text.startswith("dyn") or text.startswith("impl"):
        raise AnnotationParseError(f"Unsupported field type: {original}")

    head, args = _split_generic(text, original)
    name = head.rsplit("::", 1)[-1]
    if not name.isidentifier():
        raise AnnotationParseError(f"Unsupported field type: {original}")

    if name in ("Option", "Vec"):
        item = _parse(_single_argument(name, args, original), original)
        kind = ShapeKind.OPTIONAL if name == "Option" else ShapeKind.SEQUENCE
        return Shape(kind=kind, name=name, item=item)
    if name in _GENERIC_WRAPPERS:
        inner = _parse(_single_argument(name, args, original), original)
        return inner.model_copy(update={"wrapper": name})
    if args:
        raise AnnotationParseError(f"Unsupported generic type {name!r} in {original}")
    if name in _SCALAR_FAMILIES:
        return Shape(kind=ShapeKind.SCALAR, name=name)
    if name in _NAMED_SCALARS:
        return Shape(kind=ShapeKind.SCALAR, name=_NAMED_SCALARS[name], wrapper=name)
    if name in _NAMED_OPTIONALS:
        epoch = Shape(kind=ShapeKind.SCALAR, name="i64")
        return Shape(kind=ShapeKind.OPTIONAL, name="Option", item=epoch, wrapper=name)
    return Shape(kind=ShapeKind.REFERENCE, name=name)


def _split_generic(text: str, original: str) -> tuple[str, list[str]]:
    start = text.find("<")
    if start == -1:
        return text, []
    if not text.endswith(">"):
        raise AnnotationParseError(f"Malformed type arguments in {original}")

    args: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text[start + 1 : -1]:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
            if depth < 0:
                raise AnnotationParseError(f"Malformed type arguments in {original}")
        if char == "," and depth == 0:
            args.append("".join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise AnnotationParseError(f"Malformed type arguments in {original}")
    args.append("".join(current))
    return text[:start], [arg for arg in args if arg]


def _single_argument(name: str, args: list[str], original: str) -> str:
    if len(args) != 1:
        raise AnnotationParseError(f"{name} takes exactly one type argument in {original}")
    return args[0]


def scalar_family(shape: Shape) -> ScalarFamily:
    return _SCALAR_FAMILIES[shape.name]


def zero_value(shape: Shape) -> Any:
    """Return the value a ``ReadOnly`` field is reset to."""
    if shape.kind == ShapeKind.SEQUENCE:
        return []
    if shape.kind != ShapeKind.SCALAR:
        return None
    return {"string": "", "bool": False, "int": 0, "bigint": 0, "float": 0.0}[scalar_family(shape)]


def coerce_scalar(shape: Shape, value: str | int | float | bool) -> Any:
    """Convert a directive literal to the Python type of ``shape``'s scalar.

    Raises ``ValueError`` when the literal cannot represent a value of the field's type.
    """
    target = shape.innermost
    if target.kind != ShapeKind.SCALAR:
        return value
    family = scalar_family(target)
    if family == "string":
        return str(value)
    if family == "bool":
        if isinstance(value, bool):
            return value
        if str(value).lower() in ("true", "false"):
            return str(value).lower() == "true"
        raise ValueError(f"{value!r} is not a boolean")
    if family == "float":
        return float(value)
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not an integer")
    return int(value)


def render_shape(shape: Shape) -> str:
    if shape.wrapper in _NAMED_SCALARS or shape.wrapper in _NAMED_OPTIONALS:
        return shape.wrapper
    if shape.kind in (ShapeKind.OPTIONAL, ShapeKind.SEQUENCE) and shape.item is not None:
        text = f"{shape.name}<{render_shape(shape.item)}>"
    else:
        text = shape.name
    return f"{shape.wrapper}<{text}>" if shape.wrapper else text
