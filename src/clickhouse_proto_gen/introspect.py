"""Reading table metadata from a ClickHouse server's system tables."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any
from urllib.parse import urlparse

import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError

from clickhouse_proto_gen.errors import IntrospectionError
from clickhouse_proto_gen.logging import get_logger
from clickhouse_proto_gen.parsing import extract_underlying_table, parse_sorting_key
from clickhouse_proto_gen.types import Column, Projection, Table

logger = get_logger(__name__)

DEFAULT_DATABASE = "default"

LIST_TABLES_QUERY = """
    SELECT database || '.' || name AS full_name
    FROM system.tables
    WHERE database NOT IN ('system', 'information_schema', 'INFORMATION_SCHEMA')
    ORDER BY database, name
"""

TABLE_METADATA_QUERY = """
    SELECT comment, sorting_key, engine, engine_full
    FROM system.tables
    WHERE database = %(database)s AND name = %(table)s
"""

COLUMNS_QUERY = """
    SELECT name, type, default_kind, default_expression, comment, position
    FROM system.columns
    WHERE database = %(database)s AND table = %(table)s
    ORDER BY position
"""

PROJECTIONS_QUERY = """
    SELECT name, sorting_key, type
    FROM system.projections
    WHERE database = %(database)s AND table = %(table)s
    ORDER BY name
"""


def connect(dsn: str) -> Any:
    """Open a clickhouse-connect client for a DSN such as ``clickhouse://user:pw@host:8123/db``."""
    try:
        client = clickhouse_connect.get_client(dsn=dsn)
    except ClickHouseError as e:
        raise IntrospectionError(f"failed to connect: {e}") from e
    logger.info("Connected to ClickHouse", component="clickhouse", database=database_from_dsn(dsn))
    return client


def database_from_dsn(dsn: str) -> str:
    """Return the database named in the DSN path, or ``default``."""
    path = urlparse(dsn).path.strip("/")
    return path or DEFAULT_DATABASE


def split_table_name(name: str, database: str) -> tuple[str, str]:
    """Split ``db.table`` into its parts; bare names use ``database``."""
    parts = name.split(".")
    if len(parts) == 2:
        return parts[0], parts[1]
    return database, name


class ClickHouseIntrospector:
    """Builds ``Table`` snapshots from system.tables/columns/projections."""

    def __init__(self, client: Any) -> None:
        self.client = client
        self.log = logger.bind(component="clickhouse")

    def _rows(self, query: str, **parameters: Any) -> Sequence[Sequence[Any]]:
        return self.client.query(query, parameters=parameters).result_rows

    def list_tables(self) -> list[str]:
        """List ``database.table`` names outside the system databases."""
        try:
            rows = self._rows(LIST_TABLES_QUERY)
        except ClickHouseError as e:
            raise IntrospectionError(f"failed to query tables: {e}") from e
        return [row[0] for row in rows]

    def get_table(self, database: str, name: str) -> Table:
        """Read one table's columns, sorting key and projections."""
        comment = ""
        sorting_key: list[str] = []
        engine = ""
        engine_full = ""
        try:
            comment, sorting_key, engine, engine_full = self._load_metadata(database, name)
        except ClickHouseError as e:
            self.log.warning("Failed to get table metadata", database=database, table=name, error=str(e))

        try:
            columns = self._load_columns(database, name)
        except ClickHouseError as e:
            raise IntrospectionError(f"failed to query columns: {e}", database, name) from e
        if not columns:
            raise IntrospectionError(f"table {database}.{name} not found or has no columns", database, name)

        projections: list[Projection] = []
        try:
            projections = self._load_projections(database, name)
        except ClickHouseError as e:
            self.log.warning("Failed to get table projections", database=database, table=name, error=str(e))

        underlying = extract_underlying_table(engine_full) if engine == "Distributed" else None
        if underlying is not None:
            projections.extend(self._load_underlying_projections(*underlying))

        table = Table(
            database=database,
            name=name,
            columns=tuple(columns),
            sorting_key=tuple(sorting_key),
            projections=tuple(projections),
            comment=comment,
            engine=engine,
        )
        self.log.debug("Retrieved table schema", database=database, table=name, columns=len(columns))
        return table

    def get_tables(self, database: str, names: Iterable[str]) -> list[Table]:
        """Read several tables; names may be ``db.table``. Failures are logged and skipped."""
        tables = []
        for full_name in names:
            db, name = split_table_name(full_name, database)
            try:
                tables.append(self.get_table(db, name))
            except IntrospectionError as e:
                self.log.warning("Failed to get table, skipping", database=db, table=name, error=str(e))
        return tables

    def _load_metadata(self, database: str, name: str) -> tuple[str, list[str], str, str]:
        rows = self._rows(TABLE_METADATA_QUERY, database=database, table=name)
        if not rows:
            return "", [], "", ""
        comment, sorting_key, engine, engine_full = rows[0]
        keys = parse_sorting_key(sorting_key or "")

        if not keys and engine == "Distributed":
            underlying = extract_underlying_table(engine_full or "")
            if underlying is None:
                self.log.warning("Invalid Distributed engine format", engine_full=engine_full)
            else:
                keys = self._load_underlying_sorting_key(database, name, *underlying)

        return comment or "", keys, engine or "", engine_full or ""

    def _load_underlying_sorting_key(self, database: str, name: str, local_db: str, local_table: str) -> list[str]:
        self.log.debug(
            "Getting sorting key from underlying table",
            distributed_table=f"{database}.{name}",
            underlying_table=f"{local_db}.{local_table}",
        )
        try:
            rows = self._rows(TABLE_METADATA_QUERY, database=local_db, table=local_table)
        except ClickHouseError as e:
            self.log.warning("Failed to get underlying table sorting key", error=str(e))
            return []
        if not rows:
            return []
        return parse_sorting_key(rows[0][1] or "")

    def _load_columns(self, database: str, name: str) -> list[Column]:
        rows = self._rows(COLUMNS_QUERY, database=database, table=name)
        return [
            Column(
                name=col_name,
                type=col_type,
                position=int(position),
                comment=comment or "",
                default_kind=default_kind or "",
                default_expression=default_expression or "",
            )
            for col_name, col_type, default_kind, default_expression, comment, position in rows
        ]

    def _load_projections(self, database: str, name: str) -> list[Projection]:
        rows = self._rows(PROJECTIONS_QUERY, database=database, table=name)
        # sorting_key is already Array(String)
        return [
            Projection(name=proj_name, sorting_key=tuple(sorting_key or ()), kind=kind or "normal")
            for proj_name, sorting_key, kind in rows
        ]

    def _load_underlying_projections(self, database: str, name: str) -> list[Projection]:
        try:
            return self._load_projections(database, name)
        except ClickHouseError as e:
            self.log.debug(
                "Failed to get projections from underlying local table",
                database=database,
                table=name,
                error=str(e),
            )
            return []
