"""Tests for generated query builder modules."""

import pytest

from clickhouse_proto_gen.config import GeneratorSettings
from clickhouse_proto_gen.emitter import SchemaCompiler
from clickhouse_proto_gen.errors import RequestValidationError
from clickhouse_proto_gen.querybuilder import encode_page_token
from clickhouse_proto_gen.types import Column, Projection, Table
from clickhouse_proto_gen.writers import module_name, render_query_module

BLOCKS = Table(
    database="default",
    name="blocks",
    columns=(
        Column("slot_time", "DateTime", 1),
        Column("slot", "UInt32", 2),
        Column("value", "Nullable(UInt64)", 3),
        Column("tags", "Array(String)", 4),
    ),
    sorting_key=("slot_time",),
    projections=(Projection("p_by_slot", ("slot",)),),
)

ACCOUNTS = Table(
    database="default",
    name="accounts",
    columns=(Column("id", "UInt64", 1), Column("name", "String", 2), Column("balance", "Float64", 3)),
    sorting_key=("id", "name"),
)


def load(table, settings=None):
    """Render the module for a table and execute it."""
    schema = SchemaCompiler().compile(table)
    source = render_query_module(schema, settings or GeneratorSettings())
    namespace = {}
    exec(compile(source, f"<{table.name}>", "exec"), namespace)
    return namespace


class TestModuleName:
    """Tests for module names."""

    def test_module_name(self):
        """Test importable names."""
        assert module_name("blocks") == "blocks"
        assert module_name("Beacon-Blocks") == "beacon_blocks"
        assert module_name("2024_logs") == "t_2024_logs"
        assert module_name("class") == "class_table"


class TestConstants:
    """Tests for module-level constants."""

    def test_constants(self):
        """Test the table description."""
        module = load(BLOCKS, GeneratorSettings(max_page_size=500))

        assert module["TABLE_NAME"] == "blocks"
        assert module["DATABASE"] == "default"
        assert module["PRIMARY_KEY"] == "slot_time"
        assert module["PRIMARY_KEY_FIELDS"] == ("slot_time", "slot")
        assert module["PRIMARY_KEY_REQUIREMENT"] == "at least one of slot, slot_time is required"
        assert module["MAX_PAGE_SIZE"] == 500
        assert module["SELECT_COLUMNS"] == (
            "toUnixTimestamp(`slot_time`) AS `slot_time`",
            "slot",
            "value",
            "tags",
        )
        assert module["DEFAULT_ORDER"] == ("slot_time",)
        assert module["FILTERS"]["tags"].repeated
        assert module["FILTERS"]["slot_time"].kind == "datetime"
        assert module["FILTERS"]["value"].tag == "NullableUInt64Filter"


class TestListQuery:
    """Tests for List query builders."""

    def test_or_group_requires_a_key(self):
        """Test the OR-group requirement."""
        module = load(BLOCKS)

        with pytest.raises(RequestValidationError, match="at least one of slot, slot_time is required"):
            module["build_list_blocks_query"]({"value": {"eq": 1}})

    def test_or_group_alternative_key(self):
        """Test querying through the projection key alone."""
        module = load(BLOCKS)

        sql = module["build_list_blocks_query"]({"slot": {"eq": 5}})

        assert sql.query == (
            "SELECT toUnixTimestamp(`slot_time`) AS `slot_time`, slot, value, tags "
            "FROM `default`.`blocks` WHERE `slot` = %(p1)s ORDER BY `slot_time` LIMIT 100"
        )
        assert sql.parameters == {"p1": 5}

    def test_or_group_both_keys(self):
        """Test that every set key is applied."""
        module = load(BLOCKS)

        sql = module["build_list_blocks_query"](
            {"slot_time": {"gte": 1700000000}, "slot": {"lt": 10}, "tags": ["a"]}
        )

        assert " WHERE `slot_time` >= toDateTime(%(p1)s) AND `slot` < %(p2)s AND hasAll(`tags`, %(p3)s)" in sql.query
        assert sql.parameters == {"p1": 1700000000, "p2": 10, "p3": ["a"]}

    def test_required_key(self):
        """Test the single-key requirement."""
        module = load(ACCOUNTS)

        with pytest.raises(RequestValidationError, match="id is required"):
            module["build_list_accounts_query"]({"name": {"eq": "a"}})

    def test_full_request(self):
        """Test filters, ordering and pagination together."""
        module = load(ACCOUNTS)

        sql = module["build_list_accounts_query"](
            {
                "id": {"in": {"values": [1, 2]}},
                "name": {"starts_with": "a"},
                "balance": {"value": 1.5},
                "order_by": "name desc",
                "page_size": 10,
                "page_token": encode_page_token(20),
            },
            final=True,
        )

        assert sql.query == (
            "SELECT id, name, balance FROM `default`.`accounts` FINAL "
            "WHERE `id` IN %(p1)s AND `name` LIKE %(p2)s AND `balance` = %(p3)s "
            "ORDER BY `name` DESC LIMIT 10 OFFSET 20"
        )
        assert sql.parameters == {"p1": (1, 2), "p2": "a%", "p3": 1.5}

    def test_page_size_capped(self):
        """Test that page sizes are capped at the configured maximum."""
        module = load(ACCOUNTS, GeneratorSettings(max_page_size=50))

        sql = module["build_list_accounts_query"]({"id": {"eq": 1}, "page_size": 1000})

        assert sql.query.endswith("LIMIT 50")

    def test_invalid_order_by(self):
        """Test that unknown order fields are rejected."""
        module = load(ACCOUNTS)

        with pytest.raises(RequestValidationError, match="unknown field"):
            module["build_list_accounts_query"]({"id": {"eq": 1}, "order_by": "missing"})


class TestGetQuery:
    """Tests for Get query builders."""

    def test_get(self):
        """Test a lookup by primary key."""
        module = load(ACCOUNTS)

        sql = module["build_get_accounts_query"]({"id": 7})

        assert sql.query == "SELECT id, name, balance FROM `default`.`accounts` WHERE `id` = %(p1)s LIMIT 1"
        assert sql.parameters == {"p1": 7}

    def test_get_datetime_key(self):
        """Test that DateTime keys are bound as unix seconds."""
        module = load(BLOCKS)

        sql = module["build_get_blocks_query"]({"slot_time": 1700000000}, database=None)

        assert "FROM `blocks` WHERE `slot_time` = toDateTime(%(p1)s) LIMIT 1" in sql.query

    def test_get_requires_key(self):
        """Test error when the key is missing."""
        module = load(ACCOUNTS)

        with pytest.raises(RequestValidationError, match="id is required"):
            module["build_get_accounts_query"]({})
