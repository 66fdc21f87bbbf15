"""Field numbering and identifier rules for generated schemas.

All functions here are pure: stable field numbers across regenerations are
what keeps the wire format compatible.
"""

from __future__ import annotations

import re

from clickhouse_proto_gen.types import RESERVED_WORDS

FIELD_NUMBER_OFFSET = 10
MAX_FIELD_NUMBER = 536_870_911

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def field_number(position: int) -> int:
    """Return the message field number for a 1-based column position."""
    number = position + FIELD_NUMBER_OFFSET
    if number < 1:
        return 1
    if number > MAX_FIELD_NUMBER:
        return MAX_FIELD_NUMBER
    return number


def is_reserved_word(word: str) -> bool:
    return word.lower() in RESERVED_WORDS


def sanitize_name(name: str) -> str:
    """Convert a column name to a valid field identifier.

    ``my-col`` -> ``my_col``, ``1st`` -> ``f_1st``, ``message`` -> ``message_field``.
    """
    sanitized = _INVALID_CHARS.sub("_", name)
    if sanitized[:1].isdigit():
        sanitized = "f_" + sanitized
    if is_reserved_word(sanitized):
        sanitized += "_field"
    return sanitized


def to_pascal_case(name: str) -> str:
    """Convert a snake_case table name to a message name.

    Each ``_``-separated part is capitalized and the rest lowercased.
    A result starting with a digit gets a ``T`` prefix.
    """
    parts = _INVALID_CHARS.sub("_", name).split("_")
    result = "".join(part[:1].upper() + part[1:].lower() for part in parts if part)
    if result[:1].isdigit():
        result = "T" + result
    return result
