"""Runtime for generated query builders.

Requests are plain mappings shaped like the List/Get messages (for example
the output of ``google.protobuf.json_format.MessageToDict`` with
``preserving_proto_field_name=True``). Filters are oneof mappings such as
``{"gte": 10}`` or ``{"in": {"values": [1, 2]}}``.

Queries use ``%(pN)s`` placeholders, bound client-side by clickhouse-connect::

    sql = build_list_blocks_query(request)
    client.query(sql.query, parameters=sql.parameters)
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from clickhouse_proto_gen.errors import RequestValidationError
from clickhouse_proto_gen.expressions import ValueKind, quote_identifier
from clickhouse_proto_gen.filters import FilterTag

DEFAULT_PAGE_SIZE = 100

_COMPARISONS = {
    "eq": "=",
    "ne": "!=",
    "lt": "<",
    "lte": "<=",
    "gt": ">",
    "gte": ">=",
}

_LIKE_PATTERNS = {
    "contains": "%{}%",
    "starts_with": "{}%",
    "ends_with": "%{}",
}

# Column-side conversion used when comparing against a list of unix times
_LIST_COLUMN_CONVERSIONS = {
    ValueKind.DATETIME: "toUnixTimestamp",
    ValueKind.DATETIME64: "toUnixTimestamp64Micro",
}


@dataclass(frozen=True)
class ColumnFilter:
    """How one request field applies to the query."""

    column: str
    tag: str | None = None
    kind: str = ValueKind.PLAIN.value
    repeated: bool = False
    is_map: bool = False


@dataclass(frozen=True)
class SQLQuery:
    query: str
    parameters: dict[str, Any] = field(default_factory=dict)


class QueryBuilder:
    """Accumulates WHERE conditions and their bound parameters."""

    def __init__(self) -> None:
        self.conditions: list[str] = []
        self.parameters: dict[str, Any] = {}

    def add_param(self, value: Any) -> str:
        """Register a parameter and return its placeholder."""
        name = f"p{len(self.parameters) + 1}"
        self.parameters[name] = value
        return f"%({name})s"

    def add_condition(self, condition: str) -> None:
        self.conditions.append(condition)

    @property
    def where_clause(self) -> str:
        if not self.conditions:
            return ""
        return " WHERE " + " AND ".join(self.conditions)

    def __bool__(self) -> bool:
        return bool(self.conditions)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _kind(kind: ValueKind | str) -> ValueKind:
    return kind if isinstance(kind, ValueKind) else ValueKind(kind)


def _tag(tag: FilterTag | str) -> FilterTag:
    return tag if isinstance(tag, FilterTag) else FilterTag(tag)


def _bind(qb: QueryBuilder, value: Any, kind: ValueKind) -> str:
    placeholder = qb.add_param(value)
    if kind is ValueKind.DATETIME:
        return f"toDateTime({placeholder})"
    if kind is ValueKind.DATETIME64:
        return f"fromUnixTimestamp64Micro(toInt64({placeholder}))"
    return placeholder


def _list_values(value: Any, field_name: str) -> tuple[Any, ...]:
    if isinstance(value, Mapping):
        value = value.get("values")
    if value is None or isinstance(value, (str, bytes)):
        raise RequestValidationError(f"{field_name}: expected a list of values", field_name)
    values = tuple(value)
    if not values:
        raise RequestValidationError(f"{field_name}: list of values must not be empty", field_name)
    return values


def _single_operation(filter_value: Mapping[str, Any], field_name: str) -> tuple[str, Any] | None:
    ops = [(op, v) for op, v in filter_value.items() if v is not None]
    if not ops:
        return None
    if len(ops) > 1:
        names = ", ".join(op for op, _ in ops)
        raise RequestValidationError(f"{field_name}: only one filter operation allowed, got {names}", field_name)
    return ops[0]


def apply_filter(
    qb: QueryBuilder,
    column_expr: str,
    tag: FilterTag | str,
    filter_value: Mapping[str, Any] | None,
    kind: ValueKind | str = ValueKind.PLAIN,
    field_name: str | None = None,
) -> None:
    """Add the condition for one filter message against ``column_expr``."""
    if filter_value is None:
        return
    tag = _tag(tag)
    kind = _kind(kind)
    field_name = field_name or column_expr
    if not isinstance(filter_value, Mapping):
        raise RequestValidationError(f"{field_name}: filter must be a mapping", field_name)

    selected = _single_operation(filter_value, field_name)
    if selected is None:
        return
    op, value = selected
    if op not in tag.operations:
        raise RequestValidationError(f"{field_name}: {tag.value} does not support '{op}'", field_name)

    if tag.is_map:
        _apply_map_filter(qb, column_expr, tag, op, value, field_name)
        return

    if op in _COMPARISONS:
        qb.add_condition(f"{column_expr} {_COMPARISONS[op]} {_bind(qb, value, kind)}")
    elif op == "between":
        _apply_between(qb, column_expr, value, kind, field_name)
    elif op in ("in", "not_in"):
        values = _list_values(value, field_name)
        target = column_expr
        if kind in _LIST_COLUMN_CONVERSIONS:
            target = f"{_LIST_COLUMN_CONVERSIONS[kind]}({column_expr})"
        negate = "NOT " if op == "not_in" else ""
        qb.add_condition(f"{target} {negate}IN {qb.add_param(values)}")
    elif op in _LIKE_PATTERNS:
        pattern = _LIKE_PATTERNS[op].format(escape_like(str(value)))
        qb.add_condition(f"{column_expr} LIKE {qb.add_param(pattern)}")
    elif op == "like":
        qb.add_condition(f"{column_expr} LIKE {qb.add_param(value)}")
    elif op == "not_like":
        qb.add_condition(f"{column_expr} NOT LIKE {qb.add_param(value)}")
    elif op == "is_null":
        qb.add_condition(f"{column_expr} IS NULL")
    elif op == "is_not_null":
        qb.add_condition(f"{column_expr} IS NOT NULL")


def _apply_between(
    qb: QueryBuilder,
    column_expr: str,
    value: Any,
    kind: ValueKind,
    field_name: str,
) -> None:
    if not isinstance(value, Mapping) or value.get("min") is None:
        raise RequestValidationError(f"{field_name}: between requires 'min'", field_name)
    low = _bind(qb, value["min"], kind)
    high_value = value.get("max")
    # wrapper messages may arrive as {"value": n}
    if isinstance(high_value, Mapping):
        high_value = high_value.get("value")
    if high_value is None:
        qb.add_condition(f"{column_expr} = {low}")
        return
    high = _bind(qb, high_value, kind)
    qb.add_condition(f"{column_expr} BETWEEN {low} AND {high}")


def _apply_map_filter(
    qb: QueryBuilder,
    column_expr: str,
    tag: FilterTag,
    op: str,
    value: Any,
    field_name: str,
) -> None:
    if op == "key_value":
        if not isinstance(value, Mapping) or value.get("key") is None:
            raise RequestValidationError(f"{field_name}: key_value requires 'key'", field_name)
        element = f"{column_expr}[{qb.add_param(value['key'])}]"
        apply_filter(qb, element, tag.value_tag, value.get("value_filter"), field_name=field_name)
    elif op == "has_key":
        qb.add_condition(f"mapContains({column_expr}, {qb.add_param(value)})")
    elif op == "not_has_key":
        qb.add_condition(f"NOT mapContains({column_expr}, {qb.add_param(value)})")
    elif op == "has_any_key":
        keys = list(_list_values(value, field_name))
        qb.add_condition(f"hasAny(mapKeys({column_expr}), {qb.add_param(keys)})")
    elif op == "has_all_keys":
        keys = list(_list_values(value, field_name))
        qb.add_condition(f"hasAll(mapKeys({column_expr}), {qb.add_param(keys)})")


def column_reference(column: str, kind: ValueKind | str = ValueKind.PLAIN) -> str:
    """Return the WHERE-side expression for a column."""
    quoted = quote_identifier(column)
    if _kind(kind) is ValueKind.TEXT:
        return f"toString({quoted})"
    return quoted


def apply_column_filter(
    qb: QueryBuilder,
    column: str,
    tag: FilterTag | str,
    filter_value: Mapping[str, Any] | None,
    kind: ValueKind | str = ValueKind.PLAIN,
) -> None:
    """Apply a filter message to a named column."""
    apply_filter(qb, column_reference(column, kind), tag, filter_value, kind, field_name=column)


def apply_equality(
    qb: QueryBuilder,
    column: str,
    value: Any,
    kind: ValueKind | str = ValueKind.PLAIN,
) -> None:
    """Match a column exactly; used for unfiltered scalars and Get lookups."""
    if isinstance(value, Mapping):
        value = value.get("value")
    if value is None:
        return
    kind = _kind(kind)
    qb.add_condition(f"{column_reference(column, kind)} = {_bind(qb, value, kind)}")


def apply_request_filters(
    qb: QueryBuilder,
    request: Mapping[str, Any],
    filters: Mapping[str, ColumnFilter],
    skip: Iterable[str] = (),
) -> None:
    """Apply every set request field that has an entry in ``filters``.

    Fields with a filter message use it; repeated fields must contain all
    given values; other scalars match exactly. Maps without a filter are
    not filterable and are ignored.
    """
    skipped = set(skip)
    for field_name, column_filter in filters.items():
        if field_name in skipped:
            continue
        value = request.get(field_name)
        if value is None:
            continue
        if column_filter.tag is not None:
            apply_column_filter(qb, column_filter.column, column_filter.tag, value, column_filter.kind)
        elif column_filter.is_map:
            continue
        elif column_filter.repeated:
            values = list(value)
            if values:
                qb.add_condition(f"hasAll({quote_identifier(column_filter.column)}, {qb.add_param(values)})")
        else:
            apply_equality(qb, column_filter.column, value, column_filter.kind)


def build_order_by(
    order_by: str | None,
    fields: Mapping[str, str],
    default: Sequence[str] = (),
) -> str:
    """Translate an ``order_by`` request string into an ORDER BY list.

    ``order_by`` is ``"foo,bar desc"``; ``fields`` maps request field names
    to column names. Unknown fields raise RequestValidationError.
    """
    if not order_by or not order_by.strip():
        return ", ".join(quote_identifier(c) for c in default)

    terms = []
    for part in order_by.split(","):
        words = part.split()
        if not words:
            continue
        if len(words) > 2:
            raise RequestValidationError(f"order_by: invalid term '{part.strip()}'", "order_by")
        name = words[0]
        direction = words[1].upper() if len(words) == 2 else "ASC"
        if direction not in ("ASC", "DESC"):
            raise RequestValidationError(f"order_by: invalid direction '{words[1]}'", "order_by")
        if name not in fields:
            raise RequestValidationError(f"order_by: unknown field '{name}'", "order_by")
        column = quote_identifier(fields[name])
        terms.append(f"{column} DESC" if direction == "DESC" else column)
    return ", ".join(terms)


def normalize_page_size(page_size: int | None, max_page_size: int, default: int = DEFAULT_PAGE_SIZE) -> int:
    """Apply the default and the cap to a requested page size."""
    if page_size is None or page_size == 0:
        return min(default, max_page_size)
    if page_size < 0:
        raise RequestValidationError("page_size must not be negative", "page_size")
    return min(page_size, max_page_size)


def encode_page_token(offset: int) -> str:
    return base64.urlsafe_b64encode(f"offset:{offset}".encode()).decode()


def decode_page_token(token: str | None) -> int:
    """Return the row offset encoded in a page token; empty tokens mean 0."""
    if not token:
        return 0
    try:
        decoded = base64.urlsafe_b64decode(token.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise RequestValidationError("invalid page_token", "page_token") from e

    prefix, _, number = decoded.partition(":")
    if prefix != "offset" or not (number.isascii() and number.isdigit()):
        raise RequestValidationError("invalid page_token", "page_token")
    return int(number)


def next_page_token(offset: int, page_size: int, returned: int) -> str:
    """Return the token for the following page, or "" when this page was the last."""
    if returned < page_size:
        return ""
    return encode_page_token(offset + page_size)


def table_reference(table: str, database: str | None = None) -> str:
    if database:
        return f"{quote_identifier(database)}.{quote_identifier(table)}"
    return quote_identifier(table)


def build_parameterized_query(
    table: str,
    columns: Sequence[str],
    qb: QueryBuilder,
    order_by: str = "",
    limit: int = 0,
    offset: int = 0,
    database: str | None = None,
    final: bool = False,
) -> SQLQuery:
    """Assemble the SELECT statement.

    LIMIT is added only for a positive ``limit``, OFFSET only alongside it.
    """
    if not columns:
        raise RequestValidationError("no columns to select")

    query = f"SELECT {', '.join(columns)} FROM {table_reference(table, database)}"
    if final:
        query += " FINAL"
    query += qb.where_clause
    if order_by:
        query += f" ORDER BY {order_by}"
    if limit > 0:
        query += f" LIMIT {int(limit)}"
        if offset > 0:
            query += f" OFFSET {int(offset)}"

    return SQLQuery(query=query, parameters=dict(qb.parameters))
