"""ClickHouse Proto Gen - Protocol Buffer schemas and query builders from ClickHouse tables."""

from clickhouse_proto_gen.config import GeneratorSettings, load_settings
from clickhouse_proto_gen.emitter import ColumnDescriptor, SchemaCompiler, TableSchema
from clickhouse_proto_gen.filters import FilterTag, filter_for
from clickhouse_proto_gen.generator import Generator
from clickhouse_proto_gen.keys import KeyMode, PrimaryKeySet, reconcile
from clickhouse_proto_gen.mapper import MappedType, TypeMapper
from clickhouse_proto_gen.overrides import OverrideRules
from clickhouse_proto_gen.parsing import TypeParser
from clickhouse_proto_gen.types import Column, Projection, ProtoScalar, Table

__all__ = [
    # Main API
    "SchemaCompiler",
    "Generator",
    "GeneratorSettings",
    "load_settings",
    # Schema snapshot
    "Column",
    "Projection",
    "Table",
    # Compilation results
    "ColumnDescriptor",
    "TableSchema",
    "MappedType",
    "ProtoScalar",
    "FilterTag",
    "KeyMode",
    "PrimaryKeySet",
    # Building blocks
    "TypeParser",
    "TypeMapper",
    "OverrideRules",
    "filter_for",
    "reconcile",
]

__version__ = "0.1.0"
