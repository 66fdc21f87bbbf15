"""Mapping from ClickHouse column types to proto3 field types.

The mapper is total: any type it does not recognize maps to ``string``.
"""

from __future__ import annotations

from dataclasses import dataclass

from clickhouse_proto_gen.naming import field_number, sanitize_name
from clickhouse_proto_gen.overrides import NO_OVERRIDES, OverrideRules
from clickhouse_proto_gen.parsing import (
    is_array_type,
    parse_base_type,
    parse_map_type,
    strip_wrappers,
    unwrap_low_cardinality,
)
from clickhouse_proto_gen.types import (
    BIG_INTEGER_TYPES,
    CLICKHOUSE_SCALARS,
    MAP_KEY_TYPES,
    WRAPPER_TYPES,
    Column,
    ProtoScalar,
)

STRING = ProtoScalar.STRING.value
LOW_CARDINALITY = "LowCardinality"


@dataclass(frozen=True)
class MappedType:
    """A resolved proto field type.

    ``scalar`` is the element type (``uint64``, ``map<string, uint32>``...);
    ``repeated`` and ``wrapper`` are mutually exclusive.
    """

    scalar: str
    repeated: bool = False
    wrapper: str | None = None

    @property
    def is_map(self) -> bool:
        return self.scalar.startswith("map<")

    @property
    def uses_wrapper(self) -> bool:
        return self.wrapper is not None

    def __str__(self) -> str:
        if self.repeated:
            return f"repeated {self.scalar}"
        if self.wrapper:
            return self.wrapper
        return self.scalar


@dataclass(frozen=True)
class FieldDescriptor:
    """A row-message field: sanitized name, mapped type, number and comment."""

    name: str
    type: MappedType
    number: int
    comment: str = ""


def wrapper_for(scalar: str) -> str | None:
    """Return the google.protobuf wrapper for a primitive scalar, None for composites."""
    return WRAPPER_TYPES.get(scalar)


def resolve_type(declared: str) -> tuple[str, str]:
    """Return ``(base name, inner type)`` after Nullable/Array/LowCardinality unwrapping.

    ``Array(LowCardinality(Nullable(String)))`` -> ``("String", "String")``.
    """
    inner = strip_wrappers(declared)
    while parse_base_type(inner) == LOW_CARDINALITY:
        unwrapped = unwrap_low_cardinality(inner)
        if unwrapped == inner:
            break
        inner = unwrapped
    return parse_base_type(inner), inner


def is_string_override(column: Column, table_name: str, rules: OverrideRules) -> bool:
    """Check whether a 64-bit integer column is selected for text transport."""
    base, _ = resolve_type(column.type)
    return base in BIG_INTEGER_TYPES and rules.matches(table_name, column.name)


class TypeMapper:
    """Maps ClickHouse columns to proto3 types."""

    def map_type(
        self,
        column: Column,
        table_name: str = "",
        rules: OverrideRules | None = None,
    ) -> MappedType:
        """Map a column to its proto type.

        The big-integer override is checked first and always wins. Arrays
        become ``repeated``; nullable scalars take their wrapper message.
        """
        rules = rules or NO_OVERRIDES

        if is_string_override(column, table_name, rules):
            if column.is_array:
                return MappedType(STRING, repeated=True)
            if column.is_nullable:
                return MappedType(STRING, wrapper=wrapper_for(STRING))
            return MappedType(STRING)

        scalar = self.map_base_type(column.base_type, column.type)

        if column.is_array:
            # map<> cannot be repeated
            if scalar.startswith("map<"):
                scalar = STRING
            return MappedType(scalar, repeated=True)

        if column.is_nullable:
            return MappedType(scalar, wrapper=wrapper_for(scalar))

        return MappedType(scalar)

    def map_base_type(self, base_type: str, declared: str = "") -> str:
        """Map a base type name to a proto scalar, ``map<K, V>`` or ``string``.

        ``declared`` is the full type string, needed for LowCardinality and Map.
        """
        declared = declared or base_type

        scalar = CLICKHOUSE_SCALARS.get(base_type)
        if scalar is not None:
            return scalar.value

        if base_type == LOW_CARDINALITY:
            inner_base, inner = resolve_type(declared)
            if inner_base == LOW_CARDINALITY:
                return STRING
            return self.map_base_type(inner_base, inner)

        if base_type == "Map":
            return self._map_map_type(strip_wrappers(declared))

        # Tuple, Nested, Variant, AggregateFunction...
        return STRING

    def _map_map_type(self, declared: str) -> str:
        key_type, value_type = parse_map_type(declared)
        if not key_type or not value_type:
            return STRING

        key = self._map_element(key_type)
        if key not in MAP_KEY_TYPES:
            return STRING

        if is_array_type(value_type):
            return STRING
        value = self._map_element(value_type)
        if value.startswith("map<"):
            return STRING

        return f"map<{key}, {value}>"

    def _map_element(self, declared: str) -> str:
        base, inner = resolve_type(declared)
        return self.map_base_type(base, inner)

    def convert_column(
        self,
        column: Column,
        table_name: str = "",
        rules: OverrideRules | None = None,
    ) -> FieldDescriptor:
        """Build the row-message field for a column."""
        return FieldDescriptor(
            name=sanitize_name(column.name),
            type=self.map_type(column, table_name, rules),
            number=field_number(column.position),
            comment=column.comment,
        )
