"""Functions exposed to documentation templates.

Each helper is registered under a fixed name both as a template global
(``anchor(message.name)``) and as a filter (``message.name | anchor``). The
set is closed: ``HELPERS`` is the complete list bound into the environment.
"""

from __future__ import annotations

import re

from protodoc.descriptor import NON_PRIMITIVE_KINDS, FieldNode, MessageNode, SchemaNode
from protodoc.text_filters import nobr, p, para

SPECIAL_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9_-]")
EXCLUDE_MARKER = "@exclude"
NO_MESSAGE = "(none)"

_WORD_BOUNDARY_PATTERN = re.compile(r"([a-z0-9])([A-Z])|([A-Z]+)([A-Z][a-z])")
_SEPARATOR_PATTERN = re.compile(r"[\s_\-.]+")


def anchor(value) -> str:
    """Reduce any value to characters that are safe in a URL fragment."""
    return SPECIAL_CHARS_PATTERN.sub("-", str(value).replace("/", "_"))


def long_name(node: SchemaNode) -> str:
    """Name qualified by its parent, for nodes nested at least two levels deep."""
    parent = node.parent
    if parent is not None and parent.parent is not None:
        return f"{parent.name}.{node.name}"
    return node.name


def field_type(field: FieldNode) -> str:
    if field.message is not None:
        return long_name(field.message)
    if field.enum is not None:
        return long_name(field.enum)
    return field.type_kind


def full_field_type(field: FieldNode) -> str:
    if field.message is not None:
        return field.message.full_name
    if field.enum is not None:
        return field.enum.full_name
    return field.type_kind


def is_primitive(field: FieldNode) -> bool:
    return field.type_kind not in NON_PRIMITIVE_KINDS


def message_type(message: MessageNode | None) -> str:
    if message is None:
        return NO_MESSAGE
    return message.name


def full_message_type(message: MessageNode | None) -> str:
    if message is None:
        return NO_MESSAGE
    return message.full_name


def description(text) -> str:
    """Strip comment decoration; comments starting with @exclude render empty."""
    if text is None:
        return ""
    value = str(text).lstrip("*/\n ")
    if value.startswith(EXCLUDE_MARKER):
        return ""
    return value


# Generic string helpers not covered by Jinja2's built-in filters.


def _words(value) -> list[str]:
    spaced = _WORD_BOUNDARY_PATTERN.sub(lambda m: " ".join(g for g in m.groups() if g), str(value))
    return [word for word in _SEPARATOR_PATTERN.split(spaced) if word]


def camelcase(value) -> str:
    return "".join(word[:1].upper() + word[1:].lower() for word in _words(value))


def snakecase(value) -> str:
    return "_".join(word.lower() for word in _words(value))


def kebabcase(value) -> str:
    return "-".join(word.lower() for word in _words(value))


def repeat(value, count: int) -> str:
    return str(value) * count


HELPERS = {
    "anchor": anchor,
    "long_name": long_name,
    "field_type": field_type,
    "full_field_type": full_field_type,
    "is_primitive": is_primitive,
    "message_type": message_type,
    "full_message_type": full_message_type,
    "description": description,
    "p": p,
    "para": para,
    "nobr": nobr,
    "camelcase": camelcase,
    "snakecase": snakecase,
    "kebabcase": kebabcase,
    "repeat": repeat,
}
