"""Elm source for one declaration: type definition, JSON encoder and decoder.

Field names become camelCase in Elm while the JSON keys keep the declared
snake_case names, so encoders and decoders agree with the server's payloads.
Decoders rely on the ``andMap`` helper defined in every generated module
header.
"""

from collections.abc import Mapping

from modelforge.core.shapes import scalar_family
from modelforge.models import DeclarationKind, ModelDeclaration, Shape, ShapeKind

_ELM_RESERVED = frozenset(
    {
        "alias",
        "as",
        "case",
        "effect",
        "else",
        "exposing",
        "if",
        "import",
        "in",
        "infix",
        "let",
        "module",
        "of",
        "port",
        "then",
        "type",
        "where",
    }
)

_SCALAR_TYPES = {"string": "String", "bool": "Bool", "int": "Int", "bigint": "Int", "float": "Float"}
_SCALAR_CODECS = {"string": "string", "bool": "bool", "int": "int", "bigint": "int", "float": "float"}

INDENT = "    "


def field_name(name: str) -> str:
    head, *rest = name.strip("_").split("_")
    camel = head + "".join(part[:1].upper() + part[1:] for part in rest)
    return f"{camel}_" if camel in _ELM_RESERVED else camel


def _lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


def encoder_name(type_name: str) -> str:
    return f"{_lower_first(type_name)}Encoder"


def decoder_name(type_name: str) -> str:
    return f"{_lower_first(type_name)}Decoder"


def _parens(expression: str) -> str:
    return f"({expression})" if " " in expression else expression


def _public(name: str, names: Mapping[str, str] | None) -> str:
    return names.get(name, name) if names else name


def _constructor(declaration: ModelDeclaration, variant: str, names: Mapping[str, str] | None) -> str:
    # Elm constructors share the module namespace, so qualified enums qualify their variants
    public = _public(declaration.name, names)
    return variant if public == declaration.name else f"{public}{variant}"


def type_expression(shape: Shape, names: Mapping[str, str] | None = None) -> str:
    if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
        return f"Maybe {_parens(type_expression(shape.item, names))}"
    if shape.kind == ShapeKind.SEQUENCE and shape.item is not None:
        return f"List {_parens(type_expression(shape.item, names))}"
    if shape.kind == ShapeKind.REFERENCE:
        return _public(shape.name, names)
    return _SCALAR_TYPES[scalar_family(shape)]


def encoder_expression(shape: Shape, names: Mapping[str, str] | None = None) -> str:
    if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
        return f"(Maybe.withDefault Json.Encode.null << Maybe.map {encoder_expression(shape.item, names)})"
    if shape.kind == ShapeKind.SEQUENCE and shape.item is not None:
        return f"(Json.Encode.list {encoder_expression(shape.item, names)})"
    if shape.kind == ShapeKind.REFERENCE:
        return encoder_name(_public(shape.name, names))
    return f"Json.Encode.{_SCALAR_CODECS[scalar_family(shape)]}"


def decoder_expression(shape: Shape, names: Mapping[str, str] | None = None) -> str:
    if shape.kind == ShapeKind.OPTIONAL and shape.item is not None:
        return f"(Json.Decode.nullable {decoder_expression(shape.item, names)})"
    if shape.kind == ShapeKind.SEQUENCE and shape.item is not None:
        return f"(Json.Decode.list {decoder_expression(shape.item, names)})"
    if shape.kind == ShapeKind.REFERENCE:
        return decoder_name(_public(shape.name, names))
    return f"Json.Decode.{_SCALAR_CODECS[scalar_family(shape)]}"


def definition(declaration: ModelDeclaration, names: Mapping[str, str] | None = None) -> str:
    name = _public(declaration.name, names)
    if declaration.kind == DeclarationKind.ENUM:
        variants = [
            f"{INDENT}{'=' if i == 0 else '|'} {_constructor(declaration, variant, names)}"
            for i, variant in enumerate(declaration.variants)
        ]
        return "\n".join([f"type {name}", *variants])

    if not declaration.fields:
        return f"type alias {name} =\n{INDENT}{{}}"
    lines = [f"type alias {name} ="]
    for i, spec in enumerate(declaration.fields):
        opener = "{" if i == 0 else ","
        lines.append(f"{INDENT}{opener} {field_name(spec.name)} : {type_expression(spec.shape, names)}")
    lines.append(f"{INDENT}}}")
    return "\n".join(lines)


def encoder(declaration: ModelDeclaration, names: Mapping[str, str] | None = None) -> str:
    name = _public(declaration.name, names)
    function = encoder_name(name)
    lines = [f"{function} : {name} -> Json.Encode.Value"]

    if declaration.kind == DeclarationKind.ENUM:
        lines += [f"{function} enum =", f"{INDENT}case enum of"]
        for variant in declaration.variants:
            constructor = _constructor(declaration, variant, names)
            lines += [f"{INDENT * 2}{constructor} ->", f'{INDENT * 3}Json.Encode.string "{variant}"', ""]
        return "\n".join(lines[:-1])

    lines.append(f"{function} struct =")
    if not declaration.fields:
        lines.append(f"{INDENT}Json.Encode.object []")
        return "\n".join(lines)
    lines.append(f"{INDENT}Json.Encode.object")
    for i, spec in enumerate(declaration.fields):
        pair = f'( "{spec.name}", {encoder_expression(spec.shape, names)} struct.{field_name(spec.name)} )'
        lines.append(f"{INDENT * 2}{'[' if i == 0 else ','} {pair}")
    lines.append(f"{INDENT * 2}]")
    return "\n".join(lines)


def decoder(declaration: ModelDeclaration, names: Mapping[str, str] | None = None) -> str:
    name = _public(declaration.name, names)
    function = decoder_name(name)
    lines = [f"{function} : Json.Decode.Decoder {name}", f"{function} ="]

    if declaration.kind == DeclarationKind.ENUM:
        lines += [
            f"{INDENT}Json.Decode.string",
            f"{INDENT * 2}|> Json.Decode.andThen",
            f"{INDENT * 3}(\\x ->",
            f"{INDENT * 4}case x of",
        ]
        for variant in declaration.variants:
            constructor = _constructor(declaration, variant, names)
            lines += [f'{INDENT * 5}"{variant}" ->', f"{INDENT * 6}Json.Decode.succeed {constructor}", ""]
        lines += [
            f"{INDENT * 5}unexpected ->",
            f'{INDENT * 6}Json.Decode.fail <| "Unexpected {name} variant: " ++ unexpected',
            f"{INDENT * 3})",
        ]
        return "\n".join(lines)

    if not declaration.fields:
        lines.append(f"{INDENT}Json.Decode.succeed {{}}")
        return "\n".join(lines)
    lines.append(f"{INDENT}Json.Decode.succeed {name}")
    for spec in declaration.fields:
        expression = decoder_expression(spec.shape, names)
        lines.append(f'{INDENT * 2}|> andMap (Json.Decode.field "{spec.name}" {expression})')
    return "\n".join(lines)
