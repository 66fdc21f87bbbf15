"""Type definitions for the clickhouse_proto_gen library."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from clickhouse_proto_gen.parsing.type_parser import (
    is_array_type,
    is_nullable_type,
    parse_base_type,
    strip_wrappers,
)


class ProtoScalar(Enum):
    """Scalar types of the proto3 target language."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"

    @property
    def wrapper(self) -> str:
        """Return the google.protobuf wrapper message for this scalar."""
        return WRAPPER_TYPES[self.value]


# Wrapper objects used to represent optional primitives
WRAPPER_TYPES: dict[str, str] = {
    "string": "google.protobuf.StringValue",
    "bool": "google.protobuf.BoolValue",
    "int32": "google.protobuf.Int32Value",
    "int64": "google.protobuf.Int64Value",
    "uint32": "google.protobuf.UInt32Value",
    "uint64": "google.protobuf.UInt64Value",
    "float": "google.protobuf.FloatValue",
    "double": "google.protobuf.DoubleValue",
    "bytes": "google.protobuf.BytesValue",
}

# proto3 allows integral types, bool and string as map keys
MAP_KEY_TYPES: frozenset[str] = frozenset({
    "int32", "int64", "uint32", "uint64",
    "sint32", "sint64", "fixed32", "fixed64", "sfixed32", "sfixed64",
    "bool", "string",
})

# ClickHouse base type name -> proto scalar
CLICKHOUSE_SCALARS: dict[str, ProtoScalar] = {
    # Signed integers
    "Int8": ProtoScalar.INT32,
    "Int16": ProtoScalar.INT32,
    "Int32": ProtoScalar.INT32,
    "Int64": ProtoScalar.INT64,
    "Int128": ProtoScalar.STRING,
    "Int256": ProtoScalar.STRING,
    # Unsigned integers
    "UInt8": ProtoScalar.UINT32,
    "UInt16": ProtoScalar.UINT32,
    "UInt32": ProtoScalar.UINT32,
    "UInt64": ProtoScalar.UINT64,
    "UInt128": ProtoScalar.STRING,
    "UInt256": ProtoScalar.STRING,
    # Floats
    "Float32": ProtoScalar.FLOAT,
    "Float64": ProtoScalar.DOUBLE,
    # Decimals keep their precision as text
    "Decimal": ProtoScalar.STRING,
    "Decimal32": ProtoScalar.STRING,
    "Decimal64": ProtoScalar.STRING,
    "Decimal128": ProtoScalar.STRING,
    "Decimal256": ProtoScalar.STRING,
    "Bool": ProtoScalar.BOOL,
    # Unix timestamp in seconds
    "DateTime": ProtoScalar.UINT32,
    # toUnixTimestamp64Micro() returns Int64 whatever the declared precision
    "DateTime64": ProtoScalar.INT64,
    # Text
    "String": ProtoScalar.STRING,
    "FixedString": ProtoScalar.STRING,
    "Date": ProtoScalar.STRING,
    "Date32": ProtoScalar.STRING,
    "UUID": ProtoScalar.STRING,
    "IPv4": ProtoScalar.STRING,
    "IPv6": ProtoScalar.STRING,
    "JSON": ProtoScalar.STRING,
    "Enum8": ProtoScalar.STRING,
    "Enum16": ProtoScalar.STRING,
    "Point": ProtoScalar.STRING,
    "Ring": ProtoScalar.STRING,
    "Polygon": ProtoScalar.STRING,
    "MultiPolygon": ProtoScalar.STRING,
    "Binary": ProtoScalar.BYTES,
}

# Base types eligible for the big-integer-to-string override
BIG_INTEGER_TYPES: frozenset[str] = frozenset({"Int64", "UInt64"})

# Integer widths the transport cannot carry natively
WIDE_INTEGER_TYPES: frozenset[str] = frozenset({"Int128", "Int256", "UInt128", "UInt256"})

RESERVED_WORDS: frozenset[str] = frozenset({
    "syntax", "package", "import", "public", "option", "message", "enum",
    "service", "rpc", "returns", "stream", "repeated", "optional", "required",
    "reserved", "extensions", "extend", "oneof", "map",
    "bool", "string", "bytes", "float", "double",
    "int32", "int64", "uint32", "uint64", "sint32", "sint64",
    "fixed32", "fixed64", "sfixed32", "sfixed64",
})


@dataclass(frozen=True)
class Column:
    """A table column as reported by system.columns.

    The wrapper flags and base type are derived from ``type`` on access, so a
    column never carries stale parse results.
    """

    name: str
    type: str
    position: int = 0
    comment: str = ""
    default_kind: str = ""
    default_expression: str = ""

    @property
    def base_type(self) -> str:
        """Innermost type name, e.g. ``UInt64`` for ``Nullable(Array(UInt64))``."""
        return parse_base_type(self.type)

    @property
    def unwrapped_type(self) -> str:
        """Innermost type with its parameters, e.g. ``DateTime64(3)``."""
        return strip_wrappers(self.type)

    @property
    def is_nullable(self) -> bool:
        return is_nullable_type(self.type)

    @property
    def is_array(self) -> bool:
        return is_array_type(self.type)


@dataclass(frozen=True)
class Projection:
    """A projection (secondary ordering) of a table."""

    name: str
    sorting_key: tuple[str, ...] = ()
    kind: str = "normal"

    @property
    def leading_column(self) -> str | None:
        return self.sorting_key[0] if self.sorting_key else None


@dataclass(frozen=True)
class Table:
    """A table snapshot: columns in declared order, sorting key and projections."""

    database: str
    name: str
    columns: tuple[Column, ...] = field(default_factory=tuple)
    sorting_key: tuple[str, ...] = field(default_factory=tuple)
    projections: tuple[Projection, ...] = field(default_factory=tuple)
    comment: str = ""
    engine: str = ""

    @property
    def full_name(self) -> str:
        if self.database:
            return f"{self.database}.{self.name}"
        return self.name

    @property
    def leading_column(self) -> str | None:
        return self.sorting_key[0] if self.sorting_key else None

    def column(self, name: str) -> Column | None:
        """Get a column by name."""
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None
