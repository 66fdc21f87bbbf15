"""Shared test helpers: an in-memory stand-in for a clickhouse-connect client."""

import pytest
from clickhouse_connect.driver.exceptions import DatabaseError


class FakeResult:
    def __init__(self, rows):
        self.result_rows = rows


class FakeClient:
    """Answers the system-table queries issued by the introspector.

    ``tables`` maps ``(database, table)`` to a system.tables row of
    ``(comment, sorting_key, engine, engine_full)``; ``columns`` and
    ``projections`` map the same keys to their result rows. System tables
    named in ``failing`` raise DatabaseError.
    """

    def __init__(self, tables=None, columns=None, projections=None, failing=()):
        self.tables = tables or {}
        self.columns = columns or {}
        self.projections = projections or {}
        self.failing = set(failing)
        self.queries = []

    def query(self, query, parameters=None):
        parameters = parameters or {}
        self.queries.append((query, parameters))
        key = (parameters.get("database"), parameters.get("table"))

        for source, data in (("system.columns", self.columns), ("system.projections", self.projections)):
            if source in query:
                if source in self.failing:
                    raise DatabaseError(f"{source} unavailable")
                return FakeResult(data.get(key, []))

        if "system.tables" in self.failing:
            raise DatabaseError("system.tables unavailable")
        if not parameters:
            return FakeResult([(f"{db}.{name}",) for db, name in sorted(self.tables)])
        row = self.tables.get(key)
        return FakeResult([row] if row else [])


def column_row(name, type_, position, comment=""):
    """A system.columns row: name, type, default_kind, default_expression, comment, position."""
    return (name, type_, "", "", comment, position)


@pytest.fixture
def blocks_client():
    return FakeClient(
        tables={
            ("default", "blocks"): ("Beacon blocks", "slot_time, slot", "ReplacingMergeTree", "ReplacingMergeTree ORDER BY (slot_time, slot)"),
        },
        columns={
            ("default", "blocks"): [
                column_row("slot_time", "DateTime", 1, "Slot start"),
                column_row("slot", "UInt32", 2),
                column_row("block_root", "FixedString(66)", 3),
            ],
        },
        projections={
            ("default", "blocks"): [("p_by_slot", ["slot"], "normal")],
        },
    )
