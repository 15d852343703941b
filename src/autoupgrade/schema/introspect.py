"""Read table metadata from the SQLite catalog."""

import asyncio
import logging
from typing import Any, Optional

from autoupgrade.exceptions import DriverError, IntrospectionError
from autoupgrade.schema.catalog import (
    CatalogTableInfo,
    ColumnInfo,
    ForeignKeyInfo,
    IndexColumnInfo,
    IndexInfo,
)
from autoupgrade.schema.dbtype import get_type_affinity
from autoupgrade.schema.identifiers import (
    quote_simple_identifier,
    split_schema_identifier,
)
from autoupgrade.schema.models import generic_foreign_key_id
from autoupgrade.sqlite.session import SQLSession
from autoupgrade.types import SQL_DEFAULT_SCHEMA, TypeAffinity

logger = logging.getLogger(__name__)


class CatalogIntrospector:
    """Introspect tables through catalog pragmas of an async session."""

    def __init__(self, session: SQLSession) -> None:
        self._session = session

    async def read_schemas(self) -> list[str]:
        """List attached schema names ('main', 'temp', ...)."""
        rows = await self._fetch("PRAGMA database_list")
        return [row["name"] for row in rows]

    async def read_tables(self, schema_name: str = SQL_DEFAULT_SCHEMA) -> list[str]:
        """List table names in a schema."""
        rows = await self._fetch(
            f"SELECT name FROM {quote_simple_identifier(schema_name)}.sqlite_master "
            "WHERE type='table'"
        )
        return [row["name"] for row in rows]

    async def read_table_info(
        self, table_name: str, schema_name: Optional[str] = None
    ) -> Optional[CatalogTableInfo]:
        """Introspect a single table. Returns None if it does not exist."""
        ident_name, ident_schema = split_schema_identifier(table_name)
        schema_name = ident_schema or schema_name or SQL_DEFAULT_SCHEMA
        quoted_name = quote_simple_identifier(ident_name)
        quoted_schema = quote_simple_identifier(schema_name)

        columns = await self._pragma("table_info", quoted_name, quoted_schema)
        if not columns:
            logger.debug(f"table '{schema_name}.{ident_name}' does not exist")
            return None

        info = CatalogTableInfo(
            name=f"{schema_name}.{ident_name}",
            table_name=ident_name,
            schema_name=schema_name,
        )
        self._read_columns(info, columns)

        if (
            len(info.primary_key) == 1
            and info.columns[info.primary_key[0]].type_affinity == TypeAffinity.INTEGER
        ):
            info.auto_increment = await self._has_autoincrement(ident_name, quoted_schema)

        index_list = await self._pragma("index_list", quoted_name, quoted_schema)
        indexes = await asyncio.gather(
            *(
                self._read_index(row, quoted_schema)
                for row in index_list
                if row["origin"] != "pk"
            )
        )
        info.indexes = {idx.name: idx for idx in indexes}

        fk_list = await self._pragma("foreign_key_list", quoted_name, quoted_schema)
        info.foreign_keys = self._group_foreign_keys(fk_list)
        return info

    def _read_columns(self, info: CatalogTableInfo, rows: list[dict[str, Any]]) -> None:
        for row in rows:
            info.columns[row["name"]] = ColumnInfo(
                name=row["name"],
                type=row["type"],
                type_affinity=get_type_affinity(row["type"]),
                not_null=bool(row["notnull"]),
                default_value=row["dflt_value"],
            )
        pk_rows = sorted((row for row in rows if row["pk"]), key=lambda r: r["pk"])
        info.primary_key = [row["name"] for row in pk_rows]

    async def _has_autoincrement(self, table_name: str, quoted_schema: str) -> bool:
        """Look for 'AUTOINCREMENT' in the stored CREATE statement.

        Not checked: the word appearing in an identifier or a default literal.
        """
        rows = await self._fetch(
            f"SELECT name FROM {quoted_schema}.sqlite_master "
            "WHERE type='table' AND name=:table_name "
            "AND UPPER(sql) LIKE '%AUTOINCREMENT%'",
            {"table_name": table_name},
        )
        return len(rows) == 1

    async def _read_index(self, row: dict[str, Any], quoted_schema: str) -> IndexInfo:
        idx = IndexInfo(
            name=row["name"], unique=bool(row["unique"]), partial=bool(row["partial"])
        )
        xinfo = await self._pragma(
            "index_xinfo", quote_simple_identifier(row["name"]), quoted_schema
        )
        for col in sorted(xinfo, key=lambda c: c["seqno"]):
            if not col["key"]:
                continue
            idx.columns.append(
                IndexColumnInfo(
                    name=col["name"],
                    desc=bool(col["desc"]),
                    coll=col["coll"],
                    key=True,
                )
            )
        return idx

    def _group_foreign_keys(self, rows: list[dict[str, Any]]) -> dict[str, ForeignKeyInfo]:
        grouped: dict[int, ForeignKeyInfo] = {}
        for row in sorted(rows, key=lambda r: (r["id"], r["seq"])):
            fk = grouped.get(row["id"])
            if fk is None:
                fk = ForeignKeyInfo(ref_table=row["table"], columns=[], ref_columns=[])
                grouped[row["id"]] = fk
            fk.columns.append(row["from"])
            fk.ref_columns.append(row["to"] or "")
        return {
            generic_foreign_key_id(fk.columns, fk.ref_table, fk.ref_columns): fk
            for fk in grouped.values()
        }

    async def _pragma(
        self, pragma: str, quoted_ident: str, quoted_schema: str
    ) -> list[dict[str, Any]]:
        return await self._fetch(f"PRAGMA {quoted_schema}.{pragma}({quoted_ident})")

    async def _fetch(
        self, sql: str, params: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        try:
            return await self._session.fetchall(sql, params)
        except DriverError as e:
            raise IntrospectionError(f"catalog query failed: {sql}: {e}") from e
