"""Helpers for table-level metadata strings: sorting keys and engine arguments."""

from __future__ import annotations

DISTRIBUTED_PREFIX = "Distributed("


def parse_sorting_key(expression: str) -> list[str]:
    """Split a sorting-key expression into column names.

    Handles ``a, b`` as well as ``a ASC, b DESC``; surrounding parentheses
    are stripped from each part and empty parts are dropped.
    """
    if not expression:
        return []

    columns = []
    for part in expression.split(","):
        part = part.strip()
        if part.endswith(" ASC"):
            part = part[: -len(" ASC")]
        if part.endswith(" DESC"):
            part = part[: -len(" DESC")]
        part = part.strip("()")
        if part:
            columns.append(part)
    return columns


def split_distributed_args(args: str) -> list[str]:
    """Split engine arguments on top-level commas.

    Commas inside parentheses or inside single/double-quoted literals do not
    split. Parts are returned untrimmed.
    """
    result: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None

    for ch in args:
        if ch in ("'", '"'):
            if quote is None:
                quote = ch
            elif ch == quote:
                quote = None
        elif ch == "(" and quote is None:
            depth += 1
        elif ch == ")" and quote is None:
            depth -= 1
        elif ch == "," and quote is None and depth == 0:
            result.append("".join(current))
            current = []
            continue
        current.append(ch)

    if current:
        result.append("".join(current))
    return result


def extract_underlying_table(engine_full: str) -> tuple[str, str] | None:
    """Return ``(database, table)`` for a ``Distributed(cluster, db, table, ...)`` engine.

    Returns None for any other engine or when fewer than three arguments are present.
    """
    if not engine_full.startswith(DISTRIBUTED_PREFIX):
        return None

    content = engine_full[len(DISTRIBUTED_PREFIX):]
    if content.endswith(")"):
        content = content[:-1]

    parts = split_distributed_args(content)
    if len(parts) < 3:
        return None

    database = parts[1].strip(" '\"")
    table = parts[2].strip(" '\"")
    return database, table
