"""Tests for compiling table snapshots into schemas."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from clickhouse_proto_gen.emitter import SchemaCompiler
from clickhouse_proto_gen.expressions import ValueKind
from clickhouse_proto_gen.filters import FilterTag
from clickhouse_proto_gen.keys import KeyMode
from clickhouse_proto_gen.overrides import OverrideRules
from clickhouse_proto_gen.types import Column, Projection, Table


@pytest.fixture
def compiler():
    return SchemaCompiler()


class TestCompile:
    """End-to-end compilation of single tables."""

    def test_simple_table(self, compiler):
        """Test a table with a single sorting column."""
        table = Table("default", "t", columns=(Column("id", "UInt64", 1),), sorting_key=("id",))
        schema = compiler.compile(table)
        c = schema.columns[0]

        assert str(c.type) == "uint64"
        assert c.number == 11
        assert c.filter is FilterTag.UINT64
        assert c.select_expression == "id"
        assert schema.primary_keys.keys == ("id",)
        assert schema.key_mode is KeyMode.REQUIRED
        assert schema.requirement == "id is required"
        assert schema.message_name == "T"
        assert schema.has_service

    def test_big_integer_override(self):
        """Test a nullable big integer transported as text."""
        compiler = SchemaCompiler(OverrideRules.from_config(patterns=["t.value"]))
        table = Table(
            "default",
            "t",
            columns=(Column("id", "UInt64", 1), Column("value", "Nullable(UInt64)", 2)),
            sorting_key=("id",),
        )
        c = compiler.compile(table).column("value")

        assert str(c.type) == "google.protobuf.StringValue"
        assert c.filter is FilterTag.NULLABLE_STRING
        assert c.select_expression == "toString(`value`) AS `value`"
        assert c.value_kind is ValueKind.TEXT

    def test_projection_or_group(self, compiler):
        """Test that a projection key turns the table into an OR group."""
        table = Table(
            "default",
            "blocks",
            columns=(Column("slot_time", "DateTime", 1), Column("slot", "UInt32", 2)),
            sorting_key=("slot_time",),
            projections=(Projection("p_by_slot", ("slot",)),),
        )
        schema = compiler.compile(table)

        assert schema.key_mode is KeyMode.OR_GROUP
        assert schema.primary_keys.keys == ("slot_time", "slot")
        assert schema.requirement == "at least one of slot, slot_time is required"
        assert schema.column("slot_time").value_kind is ValueKind.DATETIME

    @pytest.mark.parametrize("declared", ["Tuple(a UInt8, b String)", "Array(Tuple(UInt8, String))"])
    def test_tuples(self, compiler, declared):
        """Test that tuples are strings without a filter."""
        table = Table("default", "t", columns=(Column("id", "UInt64", 1), Column("tup", declared, 2)), sorting_key=("id",))
        c = compiler.compile(table).column("tup")

        assert c.type.scalar == "string"
        assert c.type.repeated == declared.startswith("Array")
        assert c.filter is None

    def test_sanitized_names(self, compiler):
        """Test that field names are sanitized and numbers follow positions."""
        table = Table(
            "default",
            "t",
            columns=(Column("option", "String", 1), Column("1st-value", "UInt8", 7)),
        )
        schema = compiler.compile(table)

        assert [c.field_name for c in schema.columns] == ["option_field", "f_1st_value"]
        assert [c.number for c in schema.columns] == [11, 17]

    def test_compilation_is_deterministic(self, compiler):
        """Test that compiling twice gives equal results."""
        table = Table(
            "default",
            "t",
            columns=(Column("a", "DateTime", 1), Column("b", "Map(String, UInt64)", 2)),
            sorting_key=("a",),
        )

        assert compiler.compile(table) == compiler.compile(table)


class TestServiceShape:
    """Tests for request-related schema properties."""

    def test_no_sorting_key(self, compiler):
        """Test that a table without a sorting key gets no service."""
        table = Table("default", "logs", columns=(Column("msg", "String", 1),))
        schema = compiler.compile(table)

        assert not schema.has_service
        assert schema.key_mode is None
        assert schema.primary_key_column is None

    def test_leading_key_not_a_column(self, compiler):
        """Test a sorting key led by an expression."""
        table = Table(
            "default",
            "t",
            columns=(Column("ts", "DateTime", 1),),
            sorting_key=("toStartOfHour(ts)", "ts"),
        )
        schema = compiler.compile(table)

        assert schema.primary_keys.keys == ("toStartOfHour(ts)",)
        assert not schema.has_service

    def test_request_columns_order(self, compiler):
        """Test keys first, then sorting columns, then the rest."""
        table = Table(
            "default",
            "t",
            columns=(
                Column("value", "UInt64", 1),
                Column("name", "String", 2),
                Column("slot", "UInt32", 3),
                Column("slot_time", "DateTime", 4),
            ),
            sorting_key=("slot_time", "name"),
            projections=(Projection("p", ("slot",)),),
        )
        schema = compiler.compile(table)

        assert [c.name for c in schema.request_columns] == ["slot_time", "slot", "name", "value"]
        assert [c.name for c in schema.key_columns] == ["slot_time", "slot"]

    def test_request_and_key_types(self, compiler):
        """Test request field types with and without filters."""
        table = Table(
            "default",
            "t",
            columns=(
                Column("id", "Nullable(UInt64)", 1),
                Column("score", "Float64", 2),
                Column("tags", "Array(String)", 3),
            ),
            sorting_key=("id",),
        )
        schema = compiler.compile(table)

        assert schema.column("id").request_type == "NullableUInt64Filter"
        assert schema.column("id").key_type == "uint64"
        assert schema.column("score").request_type == "google.protobuf.DoubleValue"
        assert schema.column("tags").request_type == "repeated string"
        assert schema.needs_wrappers

    def test_no_wrappers_needed(self, compiler):
        """Test that plain tables do not import wrappers."""
        table = Table("default", "t", columns=(Column("id", "UInt64", 1),), sorting_key=("id",))

        assert not compiler.compile(table).needs_wrappers


class TestParallelCompile:
    """Tests for compiling tables from several threads."""

    def test_map_columns(self):
        """Test that parallel compilation matches sequential compilation."""
        values = ["String", "UInt32", "UInt64", "Int32", "Int64", "Float64", "Nullable(UInt8)"]
        tables = [
            Table(
                "default",
                f"t{i}",
                columns=(
                    Column("id", "UInt64", 1),
                    Column("labels", f"Map(String, {values[i % len(values)]})", 2),
                    Column("extra", f"Map(String, {values[(i + 3) % len(values)]})", 3),
                ),
                sorting_key=("id",),
            )
            for i in range(28)
        ]

        def shape(schema):
            return [(str(c.type), c.filter) for c in schema.columns]

        compiler = SchemaCompiler()
        expected = [shape(compiler.compile(t)) for t in tables]

        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(20):
                assert [shape(s) for s in pool.map(compiler.compile, tables)] == expected


class TestLogOutput:
    """Tests for log output when logging is not set up."""

    def test_compile_writes_nothing_to_stdout(self, compiler, capsys):
        """Test that compiling does not print debug events."""
        compiler.compile(Table("default", "t", columns=(Column("id", "UInt64", 1),), sorting_key=("id",)))

        assert capsys.readouterr().out == ""
