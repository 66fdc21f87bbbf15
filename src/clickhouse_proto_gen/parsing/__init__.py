"""Parsing module for ClickHouse type expressions and table metadata."""

from clickhouse_proto_gen.parsing.sorting_key import (
    extract_underlying_table,
    parse_sorting_key,
    split_distributed_args,
)
from clickhouse_proto_gen.parsing.type_lexer import TypeLexer
from clickhouse_proto_gen.parsing.type_parser import (
    EnumMember,
    NamedType,
    TypeExpr,
    TypeParser,
    fixed_string_length,
    is_array_type,
    is_nullable_type,
    parse_base_type,
    parse_map_type,
    parse_type,
    strip_wrappers,
    unwrap_low_cardinality,
)

__all__ = [
    "EnumMember",
    "NamedType",
    "TypeExpr",
    "TypeLexer",
    "TypeParser",
    "extract_underlying_table",
    "fixed_string_length",
    "is_array_type",
    "is_nullable_type",
    "parse_base_type",
    "parse_map_type",
    "parse_sorting_key",
    "parse_type",
    "split_distributed_args",
    "strip_wrappers",
    "unwrap_low_cardinality",
]
