"""Generator configuration powered by Pydantic Settings.

Values come from, in increasing priority: field defaults, ``CHPROTOGEN_*``
environment variables, a YAML config file, and command-line flags.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, BeforeValidator, Field, ValidationError
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from clickhouse_proto_gen.errors import ConfigError
from clickhouse_proto_gen.logging import get_logger
from clickhouse_proto_gen.overrides import OverrideRules

logger = get_logger(__name__)


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


# Lists also accept "a, b" strings (env vars, CLI flags)
CsvList = Annotated[list[str], BeforeValidator(_split_csv)]


class ConversionConfig(BaseModel):
    """Type conversion options."""

    # {table: [field, ...]} of Int64/UInt64 columns transported as strings
    bigint_to_string: dict[str, list[str]] = Field(default_factory=dict)
    # table.field, *.field, table.*, *.* or field
    bigint_to_string_fields: CsvList = Field(default_factory=list)

    def rules(self) -> OverrideRules:
        return OverrideRules.from_config(self.bigint_to_string, self.bigint_to_string_fields)

    def should_convert_to_string(self, table: str, field: str) -> bool:
        return self.rules().matches(table, field)


class GeneratorSettings(BaseSettings):
    """Strongly typed generator settings."""

    model_config = SettingsConfigDict(env_prefix="CHPROTOGEN_", extra="ignore")

    dsn: str = ""
    tables: Annotated[CsvList, NoDecode] = Field(default_factory=list)
    output_dir: Path = Field(default=Path("./proto"))
    package: str = Field(default="clickhouse.v1")
    go_package: str = ""
    include_comments: bool = True
    max_page_size: int = Field(default=10000, gt=0)

    # HTTP annotations
    enable_api: bool = False
    api_base_path: str = Field(default="/api/v1")
    api_table_prefixes: Annotated[CsvList, NoDecode] = Field(default_factory=list)

    # Python module holding the generated query builders
    query_package: str = Field(default="queries")

    conversion: ConversionConfig = Field(default_factory=ConversionConfig)

    def override_rules(self) -> OverrideRules:
        return self.conversion.rules()

    def should_generate_api(self, table_name: str) -> bool:
        """Check whether a table gets HTTP annotations.

        Requires ``enable_api``; an empty prefix list admits every table.
        """
        if not self.enable_api:
            return False
        if not self.api_table_prefixes:
            return True
        return any(table_name.startswith(prefix) for prefix in self.api_table_prefixes)

    def ensure_runnable(self) -> None:
        """Raise ConfigError unless the settings are enough to run a generation."""
        if not self.dsn:
            raise ConfigError("DSN is required")
        if not str(self.output_dir).strip():
            raise ConfigError("output directory is required")
        if not self.package:
            raise ConfigError("proto package is required")
        if not self.tables:
            raise ConfigError("tables must be specified")


def load_settings(path: str | Path | None = None, **overrides: Any) -> GeneratorSettings:
    """Load settings from the environment and an optional YAML file.

    Keyword overrides are applied on top of the file values.
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        try:
            with open(config_path) as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"failed to read config file: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse config file: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"config file must contain a mapping: {config_path}")
        data.update(loaded)
        logger.debug("Loaded configuration from file", config_file=str(config_path))

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return GeneratorSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def merge_overrides(settings: GeneratorSettings, **flags: Any) -> GeneratorSettings:
    """Return a copy of ``settings`` with every non-None flag applied.

    ``bigint_to_string_fields`` replaces the pattern list of ``conversion``;
    list-valued flags may be given as comma-separated strings.
    """
    updates: dict[str, Any] = {}
    for key, value in flags.items():
        if value is None:
            continue
        if key == "bigint_to_string_fields":
            conversion = settings.conversion.model_copy(
                update={"bigint_to_string_fields": _split_csv(value)}
            )
            updates["conversion"] = conversion
        elif key in ("tables", "api_table_prefixes"):
            updates[key] = _split_csv(value)
        elif key == "output_dir":
            updates[key] = Path(value)
        elif key == "max_page_size":
            if value <= 0:
                continue
            updates[key] = value
        elif key in GeneratorSettings.model_fields:
            updates[key] = value
        else:
            raise ConfigError(f"unknown setting: {key}")

    return settings.model_copy(update=updates)
