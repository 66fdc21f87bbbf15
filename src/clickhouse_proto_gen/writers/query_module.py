"""Rendering of per-table Python query builder modules.

Each generated module holds the table's SELECT list, its filter table and
two functions, ``build_list_<table>_query`` and ``build_get_<table>_query``,
that turn a request mapping into a parameterized ``SQLQuery`` using
``clickhouse_proto_gen.querybuilder``.
"""

from __future__ import annotations

import json
import keyword
import re

from clickhouse_proto_gen.config import GeneratorSettings
from clickhouse_proto_gen.emitter import ColumnDescriptor, TableSchema
from clickhouse_proto_gen.keys import KeyMode

_INVALID_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")

HEADER = '''"""Query builders for the ``{table}`` table.

Generated by clickhouse-proto-gen. Do not edit.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from clickhouse_proto_gen.errors import RequestValidationError
from clickhouse_proto_gen.querybuilder import (
    ColumnFilter,
    QueryBuilder,
    SQLQuery,
    apply_column_filter,
    apply_equality,
    apply_request_filters,
    build_order_by,
    build_parameterized_query,
    decode_page_token,
    normalize_page_size,
)
'''


def module_name(table_name: str) -> str:
    """Return an importable module name for a table."""
    name = _INVALID_IDENTIFIER.sub("_", table_name).lower()
    if not name or name[0].isdigit():
        name = "t_" + name
    if keyword.iskeyword(name):
        name += "_table"
    return name


def _literal(value: object) -> str:
    """Python source for a str/int/bool/None literal."""
    if isinstance(value, bool) or value is None:
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


def _tuple(values) -> str:
    items = [_literal(v) for v in values]
    if not items:
        return "()"
    if len(items) == 1:
        return f"({items[0]},)"
    return "(\n" + "".join(f"    {item},\n" for item in items) + ")"


def _column_filter(c: ColumnDescriptor) -> str:
    args = [f"column={_literal(c.name)}"]
    if c.filter is not None:
        args.append(f"tag={_literal(c.filter.value)}")
    if c.value_kind.value != "plain":
        args.append(f"kind={_literal(c.value_kind.value)}")
    if c.type.repeated:
        args.append("repeated=True")
    if c.type.is_map:
        args.append("is_map=True")
    return f"ColumnFilter({', '.join(args)})"


def _key_statement(c: ColumnDescriptor, access: str) -> str:
    """Statement applying a key field to the builder."""
    if c.filter is not None:
        return (
            f"apply_column_filter(qb, {_literal(c.name)}, {_literal(c.filter.value)}, "
            f"{access}, {_literal(c.value_kind.value)})"
        )
    return f"apply_equality(qb, {_literal(c.name)}, {access}, {_literal(c.value_kind.value)})"


def render_query_module(schema: TableSchema, settings: GeneratorSettings) -> str:
    """Render the query builder module for a table with a List/Get service."""
    table = schema.table
    suffix = module_name(table.name)
    key_columns = schema.key_columns
    key_fields = tuple(c.field_name for c in key_columns)
    primary = schema.primary_key_column

    lines = [HEADER.format(table=table.name), ""]
    lines.append(f"TABLE_NAME = {_literal(table.name)}")
    lines.append(f"DATABASE = {_literal(table.database or None)}")
    lines.append(f"PRIMARY_KEY = {_literal(primary.field_name)}")
    lines.append(f"PRIMARY_KEY_FIELDS = {_tuple(key_fields)}")
    lines.append(f"PRIMARY_KEY_REQUIREMENT = {_literal(schema.requirement)}")
    lines.append(f"MAX_PAGE_SIZE = {settings.max_page_size}")
    lines.append("")
    lines.append(f"SELECT_COLUMNS = {_tuple(c.select_expression for c in schema.columns)}")
    lines.append("")
    lines.append("# request field -> column")
    lines.append("COLUMN_NAMES = {")
    for c in schema.columns:
        lines.append(f"    {_literal(c.field_name)}: {_literal(c.name)},")
    lines.append("}")
    lines.append("")
    lines.append(f"DEFAULT_ORDER = {_tuple(n for n in table.sorting_key if table.has_column(n))}")
    lines.append("")
    lines.append("FILTERS = {")
    for c in schema.request_columns:
        lines.append(f"    {_literal(c.field_name)}: {_column_filter(c)},")
    lines.append("}")
    lines.append("")

    lines += _validate_function(schema, suffix, key_columns)
    lines += _list_function(schema, suffix, key_columns)
    lines += _get_function(suffix, primary)
    return "\n".join(lines) + "\n"


def _validate_function(schema: TableSchema, suffix: str, key_columns) -> list[str]:
    lines = [
        "",
        f"def validate_list_{suffix}_request(request: Mapping[str, Any]) -> None:",
        '    """Raise RequestValidationError unless the primary-key requirement holds."""',
    ]
    if schema.key_mode is KeyMode.OR_GROUP:
        lines += [
            "    if not any(request.get(field) is not None for field in PRIMARY_KEY_FIELDS):",
            "        raise RequestValidationError(PRIMARY_KEY_REQUIREMENT, PRIMARY_KEY)",
        ]
    else:
        lines += [
            "    if request.get(PRIMARY_KEY) is None:",
            "        raise RequestValidationError(PRIMARY_KEY_REQUIREMENT, PRIMARY_KEY)",
        ]
    return lines + [""]


def _list_function(schema: TableSchema, suffix: str, key_columns) -> list[str]:
    lines = [
        "",
        f"def build_list_{suffix}_query(",
        "    request: Mapping[str, Any],",
        "    *,",
        "    database: str | None = DATABASE,",
        "    final: bool = False,",
        ") -> SQLQuery:",
        '    """Build the SELECT for a List request."""',
        f"    validate_list_{suffix}_request(request)",
        "    qb = QueryBuilder()",
        "",
    ]
    if schema.key_mode is KeyMode.OR_GROUP:
        lines.append("    # at least one key is set")
        for c in key_columns:
            access = f"request[{_literal(c.field_name)}]"
            lines.append(f"    if request.get({_literal(c.field_name)}) is not None:")
            lines.append(f"        {_key_statement(c, access)}")
    else:
        primary = key_columns[0]
        lines.append("    # primary key (required)")
        lines.append(f"    {_key_statement(primary, f'request[{_literal(primary.field_name)}]')}")

    lines += [
        "",
        "    apply_request_filters(qb, request, FILTERS, skip=PRIMARY_KEY_FIELDS)",
        "",
        '    order_by = build_order_by(request.get("order_by"), COLUMN_NAMES, DEFAULT_ORDER)',
        '    page_size = normalize_page_size(request.get("page_size"), MAX_PAGE_SIZE)',
        '    offset = decode_page_token(request.get("page_token"))',
        "    return build_parameterized_query(",
        "        TABLE_NAME,",
        "        SELECT_COLUMNS,",
        "        qb,",
        "        order_by=order_by,",
        "        limit=page_size,",
        "        offset=offset,",
        "        database=database,",
        "        final=final,",
        "    )",
        "",
    ]
    return lines


def _get_function(suffix: str, primary: ColumnDescriptor) -> list[str]:
    field_name = _literal(primary.field_name)
    return [
        "",
        f"def build_get_{suffix}_query(",
        "    request: Mapping[str, Any],",
        "    *,",
        "    database: str | None = DATABASE,",
        "    final: bool = False,",
        ") -> SQLQuery:",
        '    """Build the SELECT for a Get request; at most one row."""',
        f"    if request.get({field_name}) is None:",
        f"        raise RequestValidationError({_literal(primary.field_name + ' is required')}, PRIMARY_KEY)",
        "    qb = QueryBuilder()",
        f"    apply_equality(qb, {_literal(primary.name)}, request[{field_name}], {_literal(primary.value_kind.value)})",
        "    return build_parameterized_query(",
        "        TABLE_NAME,",
        "        SELECT_COLUMNS,",
        "        qb,",
        "        limit=1,",
        "        database=database,",
        "        final=final,",
        "    )",
    ]


