"""Tests for generator settings."""

from pathlib import Path

import pytest

from clickhouse_proto_gen.config import GeneratorSettings, load_settings, merge_overrides
from clickhouse_proto_gen.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "CHPROTOGEN_DSN",
        "CHPROTOGEN_TABLES",
        "CHPROTOGEN_PACKAGE",
        "CHPROTOGEN_MAX_PAGE_SIZE",
        "CHPROTOGEN_ENABLE_API",
        "CHPROTOGEN_API_TABLE_PREFIXES",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Tests for default values and environment variables."""

    def test_defaults(self):
        """Test default settings."""
        settings = GeneratorSettings()

        assert settings.dsn == ""
        assert settings.tables == []
        assert settings.output_dir == Path("./proto")
        assert settings.package == "clickhouse.v1"
        assert settings.include_comments
        assert settings.max_page_size == 10000
        assert not settings.enable_api
        assert settings.api_base_path == "/api/v1"
        assert not settings.override_rules()

    def test_environment(self, monkeypatch):
        """Test that CHPROTOGEN_* variables are read."""
        monkeypatch.setenv("CHPROTOGEN_DSN", "clickhouse://localhost:8123/db")
        monkeypatch.setenv("CHPROTOGEN_TABLES", "blocks, events")
        monkeypatch.setenv("CHPROTOGEN_MAX_PAGE_SIZE", "500")

        settings = GeneratorSettings()

        assert settings.dsn == "clickhouse://localhost:8123/db"
        assert settings.tables == ["blocks", "events"]
        assert settings.max_page_size == 500


class TestLoadSettings:
    """Tests for YAML config files."""

    def test_load_yaml(self, tmp_path):
        """Test loading a config file."""
        config = tmp_path / "config.yaml"
        config.write_text(
            "dsn: clickhouse://localhost:8123/default\n"
            "tables:\n"
            "  - blocks\n"
            "  - events\n"
            "output_dir: out\n"
            "go_package: github.com/example/gen\n"
            "conversion:\n"
            "  bigint_to_string:\n"
            "    blocks: [value]\n"
            "  bigint_to_string_fields:\n"
            "    - '*.amount'\n"
        )

        settings = load_settings(config)

        assert settings.tables == ["blocks", "events"]
        assert settings.output_dir == Path("out")
        assert settings.go_package == "github.com/example/gen"
        assert settings.conversion.should_convert_to_string("blocks", "value")
        assert settings.conversion.should_convert_to_string("events", "amount")
        assert not settings.conversion.should_convert_to_string("events", "value")

    def test_csv_tables(self, tmp_path):
        """Test that list values also accept comma-separated strings."""
        config = tmp_path / "config.yaml"
        config.write_text("tables: 'a, b,c'\n")

        assert load_settings(config).tables == ["a", "b", "c"]

    def test_empty_file(self, tmp_path):
        """Test that an empty file gives defaults."""
        config = tmp_path / "config.yaml"
        config.write_text("")

        assert load_settings(config).package == "clickhouse.v1"

    def test_missing_file(self, tmp_path):
        """Test error on a missing file."""
        with pytest.raises(ConfigError, match="failed to read"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test error on malformed YAML."""
        config = tmp_path / "config.yaml"
        config.write_text("tables: [a, b\n")

        with pytest.raises(ConfigError, match="failed to parse"):
            load_settings(config)

    def test_not_a_mapping(self, tmp_path):
        """Test error when the file is not a mapping."""
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(config)

    def test_invalid_value(self, tmp_path):
        """Test error on values failing validation."""
        config = tmp_path / "config.yaml"
        config.write_text("max_page_size: 0\n")

        with pytest.raises(ConfigError, match="invalid configuration"):
            load_settings(config)


class TestMergeOverrides:
    """Tests for applying command-line flags."""

    def test_flags_override_file(self):
        """Test that set flags replace file values."""
        settings = GeneratorSettings(dsn="clickhouse://a", tables=["x"])

        merged = merge_overrides(settings, dsn="clickhouse://b", tables="y, z", output_dir="gen", package=None)

        assert merged.dsn == "clickhouse://b"
        assert merged.tables == ["y", "z"]
        assert merged.output_dir == Path("gen")
        assert merged.package == "clickhouse.v1"
        assert settings.dsn == "clickhouse://a"

    def test_bigint_patterns(self):
        """Test that the flag replaces the pattern list only."""
        settings = GeneratorSettings(conversion={"bigint_to_string": {"t": ["a"]}, "bigint_to_string_fields": ["*.b"]})

        merged = merge_overrides(settings, bigint_to_string_fields="t.c,*.d")

        assert merged.conversion.bigint_to_string_fields == ["t.c", "*.d"]
        assert merged.conversion.bigint_to_string == {"t": ["a"]}
        assert merged.override_rules().matches("t", "a")
        assert not merged.override_rules().matches("t", "b")

    def test_non_positive_page_size_ignored(self):
        """Test that a zero page size flag keeps the configured value."""
        settings = GeneratorSettings(max_page_size=50)

        assert merge_overrides(settings, max_page_size=0).max_page_size == 50
        assert merge_overrides(settings, max_page_size=20).max_page_size == 20

    def test_unknown_flag(self):
        """Test error on an unknown setting."""
        with pytest.raises(ConfigError):
            merge_overrides(GeneratorSettings(), colour="blue")


class TestSettingsChecks:
    """Tests for settings predicates."""

    def test_ensure_runnable(self):
        """Test the required settings."""
        with pytest.raises(ConfigError, match="DSN is required"):
            GeneratorSettings(tables=["t"]).ensure_runnable()
        with pytest.raises(ConfigError, match="tables must be specified"):
            GeneratorSettings(dsn="clickhouse://a").ensure_runnable()
        with pytest.raises(ConfigError, match="proto package is required"):
            GeneratorSettings(dsn="clickhouse://a", tables=["t"], package="").ensure_runnable()

        GeneratorSettings(dsn="clickhouse://a", tables=["t"]).ensure_runnable()

    def test_should_generate_api(self):
        """Test API prefix selection."""
        assert not GeneratorSettings().should_generate_api("blocks")
        assert GeneratorSettings(enable_api=True).should_generate_api("blocks")

        settings = GeneratorSettings(enable_api=True, api_table_prefixes=["beacon_", "mempool_"])

        assert settings.should_generate_api("beacon_blocks")
        assert not settings.should_generate_api("canonical_blocks")
