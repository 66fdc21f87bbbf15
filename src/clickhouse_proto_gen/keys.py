"""Reconciliation of a table's lookup keys across its projections.

The table's leading sorting column is the canonical key. Every projection
whose leading column differs adds an alternate lookup path; once there is
more than one key, the request must carry at least one of them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from clickhouse_proto_gen.types import Table

REQUIRED_GROUP = "primary_key"


class KeyMode(Enum):
    REQUIRED = "required"
    OR_GROUP = "or_group"


@dataclass(frozen=True)
class AlternativeKey:
    """A key introduced by a projection, usable instead of the primary key."""

    column: str
    projection: str
    substitutes_for: str


@dataclass(frozen=True)
class PrimaryKeySet:
    """Ordered lookup keys: the table's own key first, then projection keys."""

    keys: tuple[str, ...] = ()
    alternatives: tuple[AlternativeKey, ...] = ()

    @property
    def mode(self) -> KeyMode | None:
        if not self.keys:
            return None
        if len(self.keys) == 1:
            return KeyMode.REQUIRED
        return KeyMode.OR_GROUP

    @property
    def primary(self) -> str | None:
        return self.keys[0] if self.keys else None

    @property
    def is_or_group(self) -> bool:
        return self.mode is KeyMode.OR_GROUP

    def alternative_for(self, column: str) -> AlternativeKey | None:
        for alt in self.alternatives:
            if alt.column == column:
                return alt
        return None

    def __contains__(self, column: object) -> bool:
        return column in self.keys

    def __len__(self) -> int:
        return len(self.keys)


def reconcile(table: Table) -> PrimaryKeySet:
    """Collect the table's lookup keys.

    The leading sorting column comes first. A projection contributes its
    leading column when that names a column of the table and is not already
    collected; two projections nominating the same column count once.
    """
    primary = table.leading_column
    if primary is None:
        return PrimaryKeySet()

    keys = [primary]
    alternatives = []
    for projection in table.projections:
        candidate = projection.leading_column
        if candidate is None or candidate in keys:
            continue
        if not table.has_column(candidate):
            continue
        keys.append(candidate)
        alternatives.append(
            AlternativeKey(column=candidate, projection=projection.name, substitutes_for=primary)
        )

    return PrimaryKeySet(keys=tuple(keys), alternatives=tuple(alternatives))


def requirement_message(field_names: Iterable[str]) -> str:
    """Describe the key requirement, listing fields in lexicographic order."""
    names = sorted(set(field_names))
    if not names:
        return ""
    if len(names) == 1:
        return f"{names[0]} is required"
    return f"at least one of {', '.join(names)} is required"
