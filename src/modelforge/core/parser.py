import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node
from tree_sitter_language_pack import get_parser

from modelforge.core.classifier import classify_name
from modelforge.core.directives import (
    parse_container_annotations,
    parse_dependency_source,
    parse_field_directives,
)
from modelforge.core.shapes import parse_shape
from modelforge.errors import AnnotationParseError
from modelforge.models import (
    Capability,
    ContainerAnnotations,
    DeclarationKind,
    FieldSpec,
    ModelDeclaration,
    Role,
)

logger = logging.getLogger(__name__)

_DERIVE_CAPABILITIES: dict[str, Capability] = {
    "Serialize": Capability.SERIALIZABLE,
    "Deserialize": Capability.SERIALIZABLE,
    "Elm": Capability.CLIENT_CODEC,
    "ElmEncode": Capability.CLIENT_CODEC,
    "ElmDecode": Capability.CLIENT_CODEC,
    "ToSchema": Capability.SCHEMA_EXPORT,
}

_CONTAINER_ATTRIBUTES = frozenset({"api", "buildamp"})
_COMMENTS = frozenset({"line_comment", "block_comment"})


@dataclass(frozen=True)
class Attribute:
    name: str
    arguments: str | None


@dataclass
class ParseOutcome:
    declarations: list[ModelDeclaration] = field(default_factory=list)
    errors: list[AnnotationParseError] = field(default_factory=list)


def _text(node: Node, source: bytes) -> str:
    try:
        return source[node.start_byte : node.end_byte].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AnnotationParseError(f"Invalid UTF-8 at line {_line(node)}: {exc.reason}") from exc


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _attribute(node: Node, source: bytes) -> Attribute | None:
    attribute = next((child for child in node.named_children if child.type == "attribute"), None)
    if attribute is None or not attribute.named_children:
        return None
    path = _text(attribute.named_children[0], source)
    arguments = next((child for child in attribute.named_children if child.type == "token_tree"), None)
    # token trees include their delimiters
    inner = _text(arguments, source)[1:-1] if arguments is not None else None
    return Attribute(name=path.rsplit("::", 1)[-1], arguments=inner)


def _with_attributes(parent: Node) -> Iterator[tuple[Node, list[Node]]]:
    """Pair every item under ``parent`` with the attribute items written directly above it."""
    pending: list[Node] = []
    for child in parent.children:
        if child.type == "attribute_item":
            pending.append(child)
        elif child.type in _COMMENTS or not child.is_named:
            continue
        else:
            yield child, pending
            pending = []


def _attributes(items: list[Node], source: bytes) -> list[Attribute]:
    attributes = []
    for item in items:
        attribute = _attribute(item, source)
        if attribute is not None:
            attributes.append(attribute)
    return attributes


def _derive_capabilities(attributes: list[Attribute]) -> frozenset[Capability]:
    capabilities: set[Capability] = set()
    for attribute in attributes:
        if attribute.name != "derive" or not attribute.arguments:
            continue
        for marker in attribute.arguments.split(","):
            capability = _DERIVE_CAPABILITIES.get(marker.strip().rsplit("::", 1)[-1])
            if capability is not None:
                capabilities.add(capability)
    return frozenset(capabilities)


def _container(attributes: list[Attribute]) -> ContainerAnnotations:
    container = ContainerAnnotations()
    for attribute in attributes:
        if attribute.name in _CONTAINER_ATTRIBUTES and attribute.arguments is not None:
            container = parse_container_annotations(attribute.arguments, container)
    return container


def _parse_field(node: Node, attribute_items: list[Node], source: bytes) -> FieldSpec:
    name_node = node.child_by_field_name("name")
    type_node = node.child_by_field_name("type")
    if name_node is None or type_node is None:
        raise AnnotationParseError(f"Incomplete field declaration at line {_line(node)}")

    name = _text(name_node, source)
    directives = []
    dependency_source = None
    for attribute in _attributes(attribute_items, source):
        if attribute.name == "api" and attribute.arguments is not None:
            try:
                directives.extend(parse_field_directives(attribute.arguments))
            except AnnotationParseError as exc:
                raise AnnotationParseError(f"Field {name!r}: {exc}") from exc
        elif attribute.name == "dependency" and attribute.arguments is not None:
            dependency_source = parse_dependency_source(attribute.arguments)

    return FieldSpec(
        name=name,
        shape=parse_shape(_text(type_node, source)),
        directives=tuple(directives),
        dependency_source=dependency_source,
    )


def _parse_struct(node: Node, source: bytes) -> list[FieldSpec]:
    if node.child_by_field_name("type_parameters") is not None:
        raise AnnotationParseError("Generic declarations are not supported")
    body = node.child_by_field_name("body")
    if body is None:
        return []
    if body.type != "field_declaration_list":
        raise AnnotationParseError("Tuple structs are not supported; use named fields")
    return [
        _parse_field(child, attributes, source)
        for child, attributes in _with_attributes(body)
        if child.type == "field_declaration"
    ]


def _parse_enum(node: Node, source: bytes) -> list[str]:
    if node.child_by_field_name("type_parameters") is not None:
        raise AnnotationParseError("Generic declarations are not supported")
    body = node.child_by_field_name("body")
    variants: list[str] = []
    if body is None:
        return variants
    for child, _ in _with_attributes(body):
        if child.type != "enum_variant":
            continue
        name_node = child.child_by_field_name("name")
        if name_node is None:
            continue
        if child.child_by_field_name("body") is not None:
            variant = _text(name_node, source)
            raise AnnotationParseError(f"Variant {variant!r} carries a payload; only unit variants are supported")
        variants.append(_text(name_node, source))
    return variants


def parse_source(source: bytes, path: Path, lineage: tuple[str, ...], role: Role) -> ParseOutcome:
    """Extract every struct and enum declared at the top level of ``source``.

    ``role`` is the role of the file's directory; unclassified files fall back
    to a per-declaration name-suffix rule. A malformed declaration is reported
    in ``ParseOutcome.errors`` and left out; its neighbours are still returned.
    """
    tree = get_parser("rust").parse(source)
    outcome = ParseOutcome()

    for node, attribute_items in _with_attributes(tree.root_node):
        if node.type == "ERROR":
            outcome.errors.append(AnnotationParseError(f"Syntax error at line {_line(node)}", path=path))
            continue
        if node.type not in ("struct_item", "enum_item"):
            continue

        name_node = node.child_by_field_name("name")
        name: str | None = None
        try:
            if name_node is not None:
                name = _text(name_node, source)
            if name is None or node.has_error:
                raise AnnotationParseError(f"Syntax error at line {_line(node)}")
            attributes = _attributes(attribute_items, source)
            container = _container(attributes)
            capabilities = _derive_capabilities(attributes)
            kind = DeclarationKind.STRUCT if node.type == "struct_item" else DeclarationKind.ENUM
            declaration = ModelDeclaration(
                path=path,
                lineage=lineage,
                name=name,
                kind=kind,
                role=role if role != Role.UNCLASSIFIED else classify_name(name),
                fields=tuple(_parse_struct(node, source)) if kind == DeclarationKind.STRUCT else (),
                variants=tuple(_parse_enum(node, source)) if kind == DeclarationKind.ENUM else (),
                container=container,
                manually_decorated=bool(capabilities),
                declared_capabilities=capabilities,
            )
        except AnnotationParseError as exc:
            exc.declaration = name
            exc.path = path
            outcome.errors.append(exc)
            logger.debug("Excluding %s in %s: %s", name, path, exc)
            continue

        outcome.declarations.append(declaration)

    logger.debug("Parsed %d declaration(s) from %s", len(outcome.declarations), path)
    return outcome
