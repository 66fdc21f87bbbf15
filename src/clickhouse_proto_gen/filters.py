"""Selection of the filter message a List request exposes for each column."""

from __future__ import annotations

from enum import Enum

from clickhouse_proto_gen.mapper import TypeMapper, is_string_override, resolve_type
from clickhouse_proto_gen.overrides import NO_OVERRIDES, OverrideRules
from clickhouse_proto_gen.parsing import is_array_type, parse_map_type
from clickhouse_proto_gen.types import CLICKHOUSE_SCALARS, Column, ProtoScalar

NUMERIC_OPERATIONS = ("eq", "ne", "lt", "lte", "gt", "gte", "between", "in", "not_in")
STRING_OPERATIONS = ("eq", "ne", "contains", "starts_with", "ends_with", "like", "not_like", "in", "not_in")
BOOL_OPERATIONS = ("eq", "ne")
NULL_OPERATIONS = ("is_null", "is_not_null")
MAP_OPERATIONS = ("key_value", "has_key", "not_has_key", "has_any_key", "has_all_keys")


class FilterTag(Enum):
    """Filter message names declared in common.proto."""

    INT32 = "Int32Filter"
    NULLABLE_INT32 = "NullableInt32Filter"
    INT64 = "Int64Filter"
    NULLABLE_INT64 = "NullableInt64Filter"
    UINT32 = "UInt32Filter"
    NULLABLE_UINT32 = "NullableUInt32Filter"
    UINT64 = "UInt64Filter"
    NULLABLE_UINT64 = "NullableUInt64Filter"
    STRING = "StringFilter"
    NULLABLE_STRING = "NullableStringFilter"
    BOOL = "BoolFilter"
    NULLABLE_BOOL = "NullableBoolFilter"
    MAP_STRING_STRING = "MapStringStringFilter"
    MAP_STRING_UINT32 = "MapStringUInt32Filter"
    MAP_STRING_UINT64 = "MapStringUInt64Filter"
    MAP_STRING_INT32 = "MapStringInt32Filter"
    MAP_STRING_INT64 = "MapStringInt64Filter"

    @property
    def nullable(self) -> bool:
        return self.value.startswith("Nullable")

    @property
    def is_map(self) -> bool:
        return self.value.startswith("Map")

    @property
    def scalar(self) -> ProtoScalar:
        """Scalar the filter compares against; for map filters, the value scalar."""
        return _TAG_SCALARS[self.base]

    @property
    def base(self) -> FilterTag:
        """The non-nullable tag of the same family."""
        if self.nullable:
            return FilterTag(self.value[len("Nullable"):])
        return self

    @property
    def value_tag(self) -> FilterTag | None:
        """Filter applied to map values in ``key_value`` lookups."""
        return _MAP_VALUE_TAGS.get(self)

    @property
    def range_message(self) -> str:
        """``UInt64Range`` etc.; only numeric filters have one."""
        return _message_prefix(self.scalar) + "Range"

    @property
    def list_message(self) -> str:
        return _message_prefix(self.scalar) + "List"

    @property
    def key_value_message(self) -> str | None:
        if not self.is_map:
            return None
        return "MapKeyValue" + self.value[len("Map"):-len("Filter")]

    @property
    def operations(self) -> tuple[str, ...]:
        if self.is_map:
            return MAP_OPERATIONS
        scalar = self.scalar
        if scalar is ProtoScalar.STRING:
            ops = STRING_OPERATIONS
        elif scalar is ProtoScalar.BOOL:
            ops = BOOL_OPERATIONS
        else:
            ops = NUMERIC_OPERATIONS
        if self.nullable:
            return ops + NULL_OPERATIONS
        return ops

    @classmethod
    def for_scalar(cls, scalar: str, nullable: bool = False) -> FilterTag | None:
        """Return the filter tag for a proto scalar name, None when unsupported."""
        tag = _SCALAR_TAGS.get(scalar)
        if tag is None:
            return None
        if nullable:
            return cls("Nullable" + tag.value)
        return tag


def _message_prefix(scalar: ProtoScalar) -> str:
    return {
        ProtoScalar.INT32: "Int32",
        ProtoScalar.INT64: "Int64",
        ProtoScalar.UINT32: "UInt32",
        ProtoScalar.UINT64: "UInt64",
        ProtoScalar.STRING: "String",
        ProtoScalar.BOOL: "Bool",
    }[scalar]


_TAG_SCALARS: dict[FilterTag, ProtoScalar] = {
    FilterTag.INT32: ProtoScalar.INT32,
    FilterTag.INT64: ProtoScalar.INT64,
    FilterTag.UINT32: ProtoScalar.UINT32,
    FilterTag.UINT64: ProtoScalar.UINT64,
    FilterTag.STRING: ProtoScalar.STRING,
    FilterTag.BOOL: ProtoScalar.BOOL,
    FilterTag.MAP_STRING_STRING: ProtoScalar.STRING,
    FilterTag.MAP_STRING_UINT32: ProtoScalar.UINT32,
    FilterTag.MAP_STRING_UINT64: ProtoScalar.UINT64,
    FilterTag.MAP_STRING_INT32: ProtoScalar.INT32,
    FilterTag.MAP_STRING_INT64: ProtoScalar.INT64,
}

_SCALAR_TAGS: dict[str, FilterTag] = {
    ProtoScalar.INT32.value: FilterTag.INT32,
    ProtoScalar.INT64.value: FilterTag.INT64,
    ProtoScalar.UINT32.value: FilterTag.UINT32,
    ProtoScalar.UINT64.value: FilterTag.UINT64,
    ProtoScalar.STRING.value: FilterTag.STRING,
    ProtoScalar.BOOL.value: FilterTag.BOOL,
}

_MAP_VALUE_TAGS: dict[FilterTag, FilterTag] = {
    FilterTag.MAP_STRING_STRING: FilterTag.STRING,
    FilterTag.MAP_STRING_UINT32: FilterTag.UINT32,
    FilterTag.MAP_STRING_UINT64: FilterTag.UINT64,
    FilterTag.MAP_STRING_INT32: FilterTag.INT32,
    FilterTag.MAP_STRING_INT64: FilterTag.INT64,
}

# Map(String, V) value base type -> filter
_MAP_FILTERS: dict[str, FilterTag] = {
    "String": FilterTag.MAP_STRING_STRING,
    "UInt8": FilterTag.MAP_STRING_UINT32,
    "UInt16": FilterTag.MAP_STRING_UINT32,
    "UInt32": FilterTag.MAP_STRING_UINT32,
    "UInt64": FilterTag.MAP_STRING_UINT64,
    "Int8": FilterTag.MAP_STRING_INT32,
    "Int16": FilterTag.MAP_STRING_INT32,
    "Int32": FilterTag.MAP_STRING_INT32,
    "Int64": FilterTag.MAP_STRING_INT64,
}


def map_filter_for(declared: str) -> FilterTag | None:
    """Return the filter for a ``Map(K, V)`` type; only String keys are supported."""
    key_type, value_type = parse_map_type(declared)
    if not key_type or not value_type:
        return None

    key_base, _ = resolve_type(key_type)
    if key_base != "String" or is_array_type(value_type):
        return None
    value_base, value_inner = resolve_type(value_type)
    if value_inner != value_base:
        # Parameterized or composite values
        return None
    return _MAP_FILTERS.get(value_base)


def filter_for(
    column: Column,
    table_name: str = "",
    rules: OverrideRules | None = None,
    mapper: TypeMapper | None = None,
) -> FilterTag | None:
    """Select the filter message for a column, or None when it is not filterable.

    Arrays never get a filter. Overridden big-integer columns are filtered as
    strings so the filter always follows the mapped type.
    """
    rules = rules or NO_OVERRIDES
    mapper = mapper or TypeMapper()

    if column.is_array:
        return None

    if is_string_override(column, table_name, rules):
        return FilterTag.for_scalar(ProtoScalar.STRING.value, column.is_nullable)

    base, inner = resolve_type(column.type)
    if base == "Map":
        return map_filter_for(inner)
    if base not in CLICKHOUSE_SCALARS:
        # Tuples and other types degraded to text
        return None

    scalar = mapper.map_base_type(base, inner)
    return FilterTag.for_scalar(scalar, column.is_nullable)
