"""Select-list rewriting for columns the transport cannot carry as stored."""

from __future__ import annotations

from enum import Enum

from clickhouse_proto_gen.mapper import is_string_override, resolve_type
from clickhouse_proto_gen.overrides import NO_OVERRIDES, OverrideRules
from clickhouse_proto_gen.types import WIDE_INTEGER_TYPES, Column

TO_STRING = "toString"

# Base type -> conversion applied when selecting
CONVERSIONS: dict[str, str] = {
    "Date": TO_STRING,
    "Date32": TO_STRING,
    "UInt8": "toUInt32",
    "UInt16": "toUInt32",
    "DateTime": "toUnixTimestamp",
    "DateTime64": "toUnixTimestamp64Micro",
    **{name: TO_STRING for name in WIDE_INTEGER_TYPES},
}

# Substitutes for NULL array elements, typed to match the element
COALESCE_DEFAULTS: dict[str, str] = {
    "Date": "toDate(0)",
    "Date32": "toDate32(0)",
    "DateTime": "toDateTime(0)",
    "DateTime64": "toDateTime64(0, 6)",
}


class ValueKind(Enum):
    """How a filter value binds against a column."""

    PLAIN = "plain"
    # column compared through toString()
    TEXT = "text"
    # unix seconds
    DATETIME = "datetime"
    # unix microseconds
    DATETIME64 = "datetime64"


def quote_identifier(name: str) -> str:
    return "`" + name.replace("\\", "\\\\").replace("`", "\\`") + "`"


def conversion_for(
    column: Column,
    table_name: str = "",
    rules: OverrideRules | None = None,
) -> str | None:
    """Return the conversion function for a column, None when it is read as stored."""
    if is_string_override(column, table_name, rules or NO_OVERRIDES):
        return TO_STRING
    base, _ = resolve_type(column.type)
    return CONVERSIONS.get(base)


def select_expression(
    column: Column,
    table_name: str = "",
    rules: OverrideRules | None = None,
) -> str:
    """Return the select-list expression for a column.

    Unconverted columns come back as the bare name. Converted ones are
    aliased to the column name; arrays convert element-wise, and arrays of
    nullable elements coalesce each element before converting it.
    """
    fn = conversion_for(column, table_name, rules)
    if fn is None:
        return column.name

    quoted = quote_identifier(column.name)
    if column.is_array:
        if column.is_nullable:
            base, _ = resolve_type(column.type)
            default = COALESCE_DEFAULTS.get(base, "0")
            return f"arrayMap(x -> {fn}(coalesce(x, {default})), {quoted}) AS {quoted}"
        return f"arrayMap(x -> {fn}(x), {quoted}) AS {quoted}"
    return f"{fn}({quoted}) AS {quoted}"


def value_kind_for(
    column: Column,
    table_name: str = "",
    rules: OverrideRules | None = None,
) -> ValueKind:
    """Classify how filter values for a column are bound in a WHERE clause."""
    fn = conversion_for(column, table_name, rules)
    if fn == TO_STRING:
        return ValueKind.TEXT
    base, _ = resolve_type(column.type)
    if base == "DateTime":
        return ValueKind.DATETIME
    if base == "DateTime64":
        return ValueKind.DATETIME64
    return ValueKind.PLAIN
