"""Tests for big-integer override rules."""

from clickhouse_proto_gen.overrides import (
    NO_OVERRIDES,
    ExactTableField,
    OverrideRules,
    WildcardAll,
    WildcardField,
    WildcardTableField,
    parse_pattern,
)


class TestParsePattern:
    """Tests for parsing pattern strings."""

    def test_forms(self):
        """Test every accepted pattern form."""
        assert parse_pattern("blocks.slot") == ExactTableField("blocks", "slot")
        assert parse_pattern("*.slot") == WildcardField("slot")
        assert parse_pattern("slot") == WildcardField("slot")
        assert parse_pattern("blocks.*") == WildcardTableField("blocks")
        assert parse_pattern("*.*") == WildcardAll()

    def test_never_matching(self):
        """Test that empty and multi-dot patterns are dropped."""
        assert parse_pattern("") is None
        assert parse_pattern("   ") is None
        assert parse_pattern("db.blocks.slot") is None


class TestOverrideRules:
    """Tests for matching against a rule set."""

    def test_exact(self):
        """Test a table-scoped rule."""
        rules = OverrideRules.from_config(patterns=["blocks.value"])

        assert rules.matches("blocks", "value")
        assert not rules.matches("other", "value")
        assert not rules.matches("blocks", "other")

    def test_wildcards(self):
        """Test wildcard rules."""
        rules = OverrideRules.from_config(patterns=["*.value", "events.*"])

        assert rules.matches("anything", "value")
        assert rules.matches("events", "id")
        assert not rules.matches("blocks", "id")

    def test_all(self):
        """Test the match-everything rule."""
        assert OverrideRules.from_config(patterns=["*.*"]).matches("t", "f")

    def test_table_map_first(self):
        """Test that table-scoped entries precede patterns."""
        rules = OverrideRules.from_config({"blocks": ["a", "b"]}, ["*.c"])

        assert rules.rules == (
            ExactTableField("blocks", "a"),
            ExactTableField("blocks", "b"),
            WildcardField("c"),
        )
        assert len(rules) == 3

    def test_invalid_patterns_never_match(self):
        """Test that dropped patterns do not match anything."""
        rules = OverrideRules.from_config(patterns=["a.b.c", ""])

        assert not rules
        assert not rules.matches("a", "b")

    def test_matching_several_rules_is_matching_one(self):
        """Test that overlapping rules do not change the outcome."""
        single = OverrideRules.from_config(patterns=["t.f"])
        overlapping = OverrideRules.from_config({"t": ["f"]}, ["t.f", "*.f", "t.*", "*.*"])

        assert single.matches("t", "f") == overlapping.matches("t", "f")

    def test_no_overrides(self):
        """Test the empty rule set."""
        assert not NO_OVERRIDES
        assert not NO_OVERRIDES.matches("t", "f")
