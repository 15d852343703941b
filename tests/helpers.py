"""Shared test helpers for autoupgrade tests."""

import re
from contextlib import asynccontextmanager
from typing import Any, Optional

from autoupgrade.exceptions import DriverError
from autoupgrade.schema.catalog import CatalogTableInfo, ColumnInfo, IndexColumnInfo, IndexInfo
from autoupgrade.schema.dbtype import get_type_affinity
from autoupgrade.schema.models import TableBuilder, TableDefinition


def make_users_table(**kwargs) -> TableDefinition:
    """users(id INTEGER pk, name TEXT NOT NULL, email TEXT) with a unique email index."""
    return (
        TableBuilder("users", **kwargs)
        .field("id", "INTEGER", identity=True)
        .field("name", "TEXT NOT NULL")
        .field("email", "TEXT")
        .index("idx_users_email", ["email"], unique=True)
        .build()
    )


def make_table_info(
    name: str,
    columns: dict[str, str],
    primary_key: Optional[list[str]] = None,
    indexes: Optional[dict[str, list[str]]] = None,
    defaults: Optional[dict[str, str]] = None,
    not_null: Optional[set[str]] = None,
    auto_increment: bool = False,
) -> CatalogTableInfo:
    """Build a CatalogTableInfo the way the introspector reports it.

    Args:
        columns: column name -> declared type (e.g. "INTEGER")
        indexes: index name -> column names
        defaults: column name -> dflt_value as the catalog reports it
        not_null: names of NOT NULL columns
    """
    defaults = defaults or {}
    not_null = not_null or set()
    info = CatalogTableInfo(name=f"main.{name}", table_name=name, schema_name="main")
    for col_name, col_type in columns.items():
        info.columns[col_name] = ColumnInfo(
            name=col_name,
            type=col_type,
            type_affinity=get_type_affinity(col_type),
            not_null=col_name in not_null,
            default_value=defaults.get(col_name),
        )
    info.primary_key = list(primary_key or [])
    info.auto_increment = auto_increment
    for idx_name, idx_cols in (indexes or {}).items():
        info.indexes[idx_name] = IndexInfo(
            name=idx_name,
            unique=False,
            partial=False,
            columns=[IndexColumnInfo(name=c) for c in idx_cols],
        )
    return info


class FakeSession:
    """In-memory stand-in for SqliteSession.

    Records every statement in `statements` and answers fetches from
    `responses`, a list of (regex, rows) pairs matched in order against the
    SQL text. Statements matching a pattern in `failures` raise DriverError.
    """

    def __init__(
        self,
        responses: Optional[list[tuple[str, list[dict[str, Any]]]]] = None,
        failures: Optional[list[str]] = None,
    ):
        self.responses = list(responses or [])
        self.failures = list(failures or [])
        self.statements: list[str] = []
        self.params: list[Optional[dict[str, Any]]] = []
        self.transactions: list[str] = []

    def _check_failure(self, sql: str) -> None:
        for pattern in self.failures:
            if re.search(pattern, sql):
                raise DriverError(f"forced failure (statement: {sql})", statement=sql)

    async def execute(self, sql: str, params: Optional[dict[str, Any]] = None) -> None:
        self.statements.append(sql)
        self.params.append(params)
        self._check_failure(sql)

    async def fetchall(
        self, sql: str, params: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        self.statements.append(sql)
        self.params.append(params)
        self._check_failure(sql)
        for pattern, rows in self.responses:
            if re.search(pattern, sql):
                return [dict(row) for row in rows]
        return []

    async def fetchone(
        self, sql: str, params: Optional[dict[str, Any]] = None
    ) -> Optional[dict[str, Any]]:
        rows = await self.fetchall(sql, params)
        return rows[0] if rows else None

    @asynccontextmanager
    async def transaction(self):
        self.transactions.append("begin")
        try:
            yield self
        except BaseException:
            self.transactions.append("rollback")
            raise
        self.transactions.append("commit")


def table_info_rows(*columns: tuple) -> list[dict[str, Any]]:
    """Rows of PRAGMA table_info from (name, type, notnull, dflt_value, pk) tuples."""
    return [
        {
            "cid": cid,
            "name": name,
            "type": col_type,
            "notnull": notnull,
            "dflt_value": dflt,
            "pk": pk,
        }
        for cid, (name, col_type, notnull, dflt, pk) in enumerate(columns)
    ]
