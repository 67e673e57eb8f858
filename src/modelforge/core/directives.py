"""Parser for the directive mini-language inside model attributes.

An attribute argument list is a comma-separated sequence of items::

    Trim, Required, MaxLength(100), Inject = "host", Default("LGTM")

Each item is a bare ``Name``, ``Name(literal)`` or ``Name = literal``. Literals
are integers, decimals, double-quoted strings or bare identifiers (read as
strings). Field directives, container annotations and dependency sources are
all spelled in this grammar; only the accepted names differ.
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from modelforge.errors import AnnotationParseError
from modelforge.models import (
    CONTEXT_FIELDS,
    ContainerAnnotations,
    Default,
    Email,
    Inject,
    MaxLength,
    MinLength,
    ReadOnly,
    Required,
    Trim,
    Url,
    ValidationDirective,
)

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<punct>[(),=])
    )""",
    re.VERBOSE,
)

_NO_VALUE = object()


@dataclass(frozen=True)
class DirectiveItem:
    name: str
    value: Any = _NO_VALUE

    @property
    def has_value(self) -> bool:
        return self.value is not _NO_VALUE


def _tokenize(text: str) -> list[tuple[str, Any]]:
    tokens: list[tuple[str, Any]] = []
    pos = 0
    stripped_end = len(text.rstrip())
    while pos < stripped_end:
        match = _TOKEN.match(text, pos)
        if match is None:
            raise AnnotationParseError(f"Unexpected input in directive list at {text[pos:].strip()!r}")
        pos = match.end()
        kind = match.lastgroup
        raw = match.group(kind)
        if kind == "string":
            tokens.append(("literal", json.loads(raw)))
        elif kind == "number":
            tokens.append(("literal", float(raw) if "." in raw else int(raw)))
        else:
            tokens.append((kind, raw))
    return tokens


def parse_items(text: str) -> list[DirectiveItem]:
    """Parse the text between an attribute's parentheses into items."""
    tokens = _tokenize(text)
    items: list[DirectiveItem] = []
    index = 0

    def literal_at(i: int) -> Any:
        if i >= len(tokens) or tokens[i][0] not in ("literal", "ident"):
            raise AnnotationParseError(f"Expected a literal value in {text.strip()!r}")
        return tokens[i][1]

    while index < len(tokens):
        kind, name = tokens[index]
        if kind != "ident":
            raise AnnotationParseError(f"Expected a directive name, found {name!r} in {text.strip()!r}")
        index += 1
        if index < len(tokens) and tokens[index] == ("punct", "("):
            value = literal_at(index + 1)
            if index + 2 >= len(tokens) or tokens[index + 2] != ("punct", ")"):
                raise AnnotationParseError(f"Unclosed argument list for {name} in {text.strip()!r}")
            items.append(DirectiveItem(name, value))
            index += 3
        elif index < len(tokens) and tokens[index] == ("punct", "="):
            items.append(DirectiveItem(name, literal_at(index + 1)))
            index += 2
        else:
            items.append(DirectiveItem(name))

        if index < len(tokens):
            if tokens[index] != ("punct", ","):
                raise AnnotationParseError(f"Expected ',' after {name} in {text.strip()!r}")
            index += 1
    return items


def _require_int(item: DirectiveItem) -> int:
    if not item.has_value or isinstance(item.value, bool) or not isinstance(item.value, int):
        raise AnnotationParseError(f"{item.name} requires an integer argument")
    if item.value < 0:
        raise AnnotationParseError(f"{item.name} must not be negative")
    return item.value


def _require_str(item: DirectiveItem) -> str:
    if not item.has_value or not isinstance(item.value, str):
        raise AnnotationParseError(f"{item.name} requires a string argument")
    return item.value


def _require_flag(item: DirectiveItem) -> None:
    if item.has_value:
        raise AnnotationParseError(f"{item.name} does not take an argument")


def _inject(item: DirectiveItem) -> Inject:
    context_field = _require_str(item)
    if context_field not in CONTEXT_FIELDS:
        known = ", ".join(sorted(CONTEXT_FIELDS))
        raise AnnotationParseError(f"Inject names unknown context field {context_field!r} (known: {known})")
    return Inject(context_field=context_field)


def _default(item: DirectiveItem) -> Default:
    if not item.has_value:
        raise AnnotationParseError("Default requires a value")
    return Default(value=item.value)


def _flag(
    directive_type: type[Trim | Required | ReadOnly | Email | Url],
) -> Callable[[DirectiveItem], ValidationDirective]:
    def build(item: DirectiveItem) -> ValidationDirective:
        _require_flag(item)
        return directive_type()

    return build


_FIELD_DIRECTIVES: dict[str, Callable[[DirectiveItem], ValidationDirective]] = {
    "Trim": _flag(Trim),
    "Required": _flag(Required),
    "ReadOnly": _flag(ReadOnly),
    "Email": _flag(Email),
    "Url": _flag(Url),
    "MinLength": lambda item: MinLength(n=_require_int(item)),
    "MaxLength": lambda item: MaxLength(n=_require_int(item)),
    "Inject": _inject,
    "Default": _default,
}


def parse_field_directives(text: str) -> tuple[ValidationDirective, ...]:
    directives = []
    for item in parse_items(text):
        build = _FIELD_DIRECTIVES.get(item.name)
        if build is None:
            raise AnnotationParseError(f"Unknown field directive {item.name!r}")
        directives.append(build(item))
    return tuple(directives)


def parse_container_annotations(text: str, current: ContainerAnnotations) -> ContainerAnnotations:
    """Fold one container attribute's items into ``current``."""
    updates: dict[str, Any] = {}
    access_tags = list(current.access_tags)
    for item in parse_items(text):
        if item.name == "path":
            updates["route_path"] = _require_str(item)
        elif item.name in ("server_context", "bundle_with"):
            updates["bundle_context"] = _require_str(item)
        elif item.name == "bundle":
            _require_flag(item)
            updates["bundle"] = True
        elif item.name in ("Auth", "ExtensionOnly"):
            _require_flag(item)
            if item.name not in access_tags:
                access_tags.append(item.name)
        else:
            raise AnnotationParseError(f"Unknown container annotation {item.name!r}")
    updates["access_tags"] = tuple(access_tags)
    return current.model_copy(update=updates)


def parse_dependency_source(text: str) -> str:
    items = parse_items(text)
    if len(items) != 1 or items[0].name != "source":
        raise AnnotationParseError('dependency attribute expects exactly `source = "..."`')
    return _require_str(items[0])
