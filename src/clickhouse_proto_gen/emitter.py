"""Compilation of a table snapshot into a complete schema description.

``SchemaCompiler.compile`` is the single entry point used by the writers: it
combines type mapping, filter selection, key reconciliation and expression
rewriting into one ``TableSchema`` per table. Compilation has no side effects
and each table is compiled independently.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from clickhouse_proto_gen.expressions import ValueKind, select_expression, value_kind_for
from clickhouse_proto_gen.filters import FilterTag, filter_for
from clickhouse_proto_gen.keys import KeyMode, PrimaryKeySet, reconcile, requirement_message
from clickhouse_proto_gen.logging import get_logger
from clickhouse_proto_gen.mapper import MappedType, TypeMapper, wrapper_for
from clickhouse_proto_gen.naming import field_number, sanitize_name, to_pascal_case
from clickhouse_proto_gen.overrides import NO_OVERRIDES, OverrideRules
from clickhouse_proto_gen.types import Column, Table

__all__ = [
    "ColumnDescriptor",
    "SchemaCompiler",
    "TableSchema",
    "field_number",
    "sanitize_name",
    "to_pascal_case",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class ColumnDescriptor:
    """Everything the writers need to know about one column."""

    column: Column
    field_name: str
    type: MappedType
    number: int
    filter: FilterTag | None
    select_expression: str
    value_kind: ValueKind = ValueKind.PLAIN

    @property
    def name(self) -> str:
        return self.column.name

    @property
    def comment(self) -> str:
        return self.column.comment

    @property
    def request_type(self) -> str:
        """Field type in the List request: the filter, else an optional value."""
        if self.filter is not None:
            return self.filter.value
        if self.type.repeated:
            return str(self.type)
        return wrapper_for(self.type.scalar) or self.type.scalar

    @property
    def key_type(self) -> str:
        """Field type when the column is a required lookup key (Get request)."""
        return str(MappedType(self.type.scalar, repeated=self.type.repeated))


@dataclass(frozen=True)
class TableSchema:
    """A compiled table: ordered column descriptors plus its key contract."""

    table: Table
    message_name: str
    columns: tuple[ColumnDescriptor, ...]
    primary_keys: PrimaryKeySet = field(default_factory=PrimaryKeySet)

    @property
    def name(self) -> str:
        return self.table.name

    @property
    def has_service(self) -> bool:
        """List/Get RPCs need a leading sorting column that is a real column."""
        return self.primary_key_column is not None

    @property
    def key_mode(self) -> KeyMode | None:
        return self.primary_keys.mode

    def column(self, name: str) -> ColumnDescriptor | None:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    @property
    def key_columns(self) -> tuple[ColumnDescriptor, ...]:
        """Lookup keys that name actual columns, in key order."""
        found = (self.column(key) for key in self.primary_keys.keys)
        return tuple(c for c in found if c is not None)

    @property
    def primary_key_column(self) -> ColumnDescriptor | None:
        primary = self.primary_keys.primary
        return self.column(primary) if primary else None

    @property
    def requirement(self) -> str:
        return requirement_message(c.field_name for c in self.key_columns)

    @property
    def request_columns(self) -> tuple[ColumnDescriptor, ...]:
        """Columns in List request order: keys, remaining sorting columns, the rest."""
        ordered: list[ColumnDescriptor] = []
        seen: set[str] = set()

        def add(name: str) -> None:
            descriptor = self.column(name)
            if descriptor is not None and name not in seen:
                seen.add(name)
                ordered.append(descriptor)

        for key in self.primary_keys.keys:
            add(key)
        for name in self.table.sorting_key[1:]:
            add(name)
        for descriptor in self.columns:
            add(descriptor.name)
        return tuple(ordered)

    @property
    def needs_wrappers(self) -> bool:
        """Check whether the file must import google/protobuf/wrappers.proto."""
        for c in self.columns:
            if c.type.uses_wrapper:
                return True
            if self.has_service and c.filter is None and not c.type.repeated:
                if wrapper_for(c.type.scalar) is not None:
                    return True
        return False


class SchemaCompiler:
    """Compiles table snapshots into ``TableSchema`` descriptions."""

    def __init__(self, rules: OverrideRules | None = None, mapper: TypeMapper | None = None) -> None:
        self.rules = rules or NO_OVERRIDES
        self.mapper = mapper or TypeMapper()
        self.log = logger.bind(component="emitter")

    def describe_column(self, column: Column, table_name: str) -> ColumnDescriptor:
        return ColumnDescriptor(
            column=column,
            field_name=sanitize_name(column.name),
            type=self.mapper.map_type(column, table_name, self.rules),
            number=field_number(column.position),
            filter=filter_for(column, table_name, self.rules, self.mapper),
            select_expression=select_expression(column, table_name, self.rules),
            value_kind=value_kind_for(column, table_name, self.rules),
        )

    def compile(self, table: Table) -> TableSchema:
        """Compile one table."""
        columns = tuple(self.describe_column(c, table.name) for c in table.columns)
        keys = reconcile(table)

        if table.sorting_key and not table.has_column(table.sorting_key[0]):
            self.log.warning(
                "Leading sorting key is not a column",
                table=table.full_name,
                sorting_key=table.sorting_key[0],
            )

        schema = TableSchema(
            table=table,
            message_name=to_pascal_case(table.name),
            columns=columns,
            primary_keys=keys,
        )
        self.log.debug(
            "Compiled table schema",
            table=table.full_name,
            columns=len(columns),
            keys=list(keys.keys),
            mode=keys.mode.value if keys.mode else None,
        )
        return schema
