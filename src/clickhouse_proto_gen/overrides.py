"""Rules selecting Int64/UInt64 columns that are transported as text.

Two sources feed the rules: a table-scoped mapping (``{table: [field, ...]}``)
and a flat pattern list. Patterns take the forms ``table.field``,
``*.field``, ``table.*``, ``*.*`` or a bare ``field``. A pattern with more
than one dot, or an empty one, never matches.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Union

WILDCARD = "*"


@dataclass(frozen=True)
class ExactTableField:
    table: str
    field: str

    def matches(self, table: str, field: str) -> bool:
        return self.table == table and self.field == field


@dataclass(frozen=True)
class WildcardField:
    """``*.field`` or a bare ``field``: the field in any table."""

    field: str

    def matches(self, table: str, field: str) -> bool:
        return self.field == field


@dataclass(frozen=True)
class WildcardTableField:
    """``table.*``: every field of one table."""

    table: str

    def matches(self, table: str, field: str) -> bool:
        return self.table == table


@dataclass(frozen=True)
class WildcardAll:
    """``*.*``: every field of every table."""

    def matches(self, table: str, field: str) -> bool:
        return True


OverrideRule = Union[ExactTableField, WildcardField, WildcardTableField, WildcardAll]


def parse_pattern(pattern: str) -> OverrideRule | None:
    """Parse a single pattern string, returning None when it can never match."""
    pattern = pattern.strip()
    if not pattern:
        return None

    parts = pattern.split(".")
    if len(parts) == 1:
        return WildcardField(parts[0])
    if len(parts) != 2:
        return None

    table, field = parts
    if table == WILDCARD and field == WILDCARD:
        return WildcardAll()
    if table == WILDCARD:
        return WildcardField(field)
    if field == WILDCARD:
        return WildcardTableField(table)
    return ExactTableField(table, field)


@dataclass(frozen=True)
class OverrideRules:
    """An ordered, immutable set of override rules."""

    rules: tuple[OverrideRule, ...] = ()

    @classmethod
    def from_config(
        cls,
        table_fields: Mapping[str, Iterable[str]] | None = None,
        patterns: Iterable[str] | None = None,
    ) -> OverrideRules:
        """Build rules: table-scoped entries first, then patterns in order."""
        rules: list[OverrideRule] = []
        for table, fields in (table_fields or {}).items():
            for field in fields:
                rules.append(ExactTableField(table, field))
        for pattern in patterns or ():
            rule = parse_pattern(pattern)
            if rule is not None:
                rules.append(rule)
        return cls(tuple(rules))

    def matches(self, table: str, field: str) -> bool:
        """Check whether any rule selects ``table.field``."""
        return any(rule.matches(table, field) for rule in self.rules)

    def __bool__(self) -> bool:
        return bool(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


NO_OVERRIDES = OverrideRules()
