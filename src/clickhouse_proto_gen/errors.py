"""Exception types raised at the edges of the generator."""

from __future__ import annotations


class ClickHouseProtoGenError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(ClickHouseProtoGenError):
    """Configuration is missing, unreadable, or fails validation."""


class IntrospectionError(ClickHouseProtoGenError):
    """Table metadata could not be read from the server."""

    def __init__(self, message: str, database: str = "", table: str = "") -> None:
        super().__init__(message)
        self.database = database
        self.table = table


class RequestValidationError(ClickHouseProtoGenError, ValueError):
    """A list/get request cannot be turned into a query."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
