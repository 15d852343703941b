"""Apply a planned upgrade to the database."""

import asyncio
import logging
from typing import Any, Optional

from autoupgrade.exceptions import DriverError, InvariantError, UpgradeExecutionError
from autoupgrade.schema.catalog import CatalogTableInfo
from autoupgrade.schema.codegen import StatementGenerator
from autoupgrade.schema.models import Field, TableDefinition
from autoupgrade.sqlite.session import SQLSession
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.planner import UpgradeInfo

__all__ = ["UpgradeExecutor"]

logger = logging.getLogger(__name__)


class UpgradeExecutor:
    """Run the CREATE / ALTER / RECREATE statements for an UpgradeInfo."""

    def __init__(self, session: SQLSession) -> None:
        self._session = session

    async def execute(self, table: TableDefinition, upgrade_info: UpgradeInfo) -> None:
        mode = upgrade_info.upgrade_mode
        if mode == UpgradeMode.ACTUAL:
            return
        if mode == UpgradeMode.CREATE:
            await self.create_table(table)
        elif mode == UpgradeMode.ALTER:
            await self.alter_table(table, self._require_info(table, upgrade_info))
        elif mode == UpgradeMode.RECREATE:
            await self.recreate_table(
                table,
                self._require_info(table, upgrade_info),
                keep_old_columns=upgrade_info.keep_old_columns,
            )
        else:
            raise InvariantError(f"table '{table.name}': unknown upgrade mode {mode!r}")

    def _require_info(self, table: TableDefinition, upgrade_info: UpgradeInfo) -> CatalogTableInfo:
        if upgrade_info.table_info is None:
            raise InvariantError(
                f"table '{table.name}': {upgrade_info.upgrade_mode.value} "
                "requires catalog info"
            )
        return upgrade_info.table_info

    async def create_table(self, table: TableDefinition) -> None:
        """Create the table, then all of its indexes."""
        gen = StatementGenerator(table)
        logger.info(f"table '{table.name}': create table")
        await self._exec(table, "create table", gen.create_table())
        await self._create_indexes(table, gen)

    async def alter_table(self, table: TableDefinition, info: CatalogTableInfo) -> None:
        """Add missing columns, drop changed or removed indexes, add new ones.

        Index creation waits for the drops, since a changed index is
        recreated under the same name.
        """
        gen = StatementGenerator(table)
        pending: list[tuple[str, str]] = []

        for fld in table.fields:
            if fld.name not in info.columns:
                pending.append((f"add column '{fld.name}'", gen.add_column(fld.name)))

        remaining = set(info.indexes)
        for name, idx_info in info.indexes.items():
            idx = table.get_index(name)
            if idx is not None and idx.column_names == idx_info.column_names:
                continue
            pending.append((f"drop index '{name}'", gen.drop_index(name)))
            remaining.discard(name)

        creates = [
            (f"create index '{name}'", gen.create_index(name))
            for name in table.index_map
            if name not in remaining
        ]

        logger.info(
            f"table '{table.name}': alter table ({len(pending) + len(creates)} statements)"
        )
        for batch in (pending, creates):
            await asyncio.gather(
                *(self._exec(table, action, sql) for action, sql in batch)
            )

    async def recreate_table(
        self,
        table: TableDefinition,
        info: CatalogTableInfo,
        keep_old_columns: bool = False,
    ) -> None:
        """Rebuild the table and copy its rows over in one transaction.

        With `keep_old_columns` every catalog column is carried over;
        otherwise only the columns still declared are copied.
        """
        gen = StatementGenerator(table)
        add_fields = self._old_column_fields(table, info) if keep_old_columns else []
        if keep_old_columns:
            copy_columns = list(info.columns)
        else:
            copy_columns = [name for name in info.columns if table.get_field(name)]

        logger.info(f"table '{table.name}': recreate table")
        try:
            async with self._session.transaction():
                legacy_alter = await self._session.fetchone("PRAGMA legacy_alter_table")
                await self._session.execute("PRAGMA legacy_alter_table = ON")
                try:
                    await self._session.execute(gen.rename_to_recreate_name())
                    await self._session.execute(gen.create_table(add_fields))
                    if copy_columns:
                        await self._session.execute(
                            gen.copy_rows_from_recreate_name(copy_columns)
                        )
                    await self._session.execute(gen.drop_table(gen.recreate_name))
                finally:
                    await self._session.execute(
                        f"PRAGMA legacy_alter_table = {_pragma_flag(legacy_alter)}"
                    )
        except DriverError as e:
            raise UpgradeExecutionError(
                table.name, "recreate table", e, statement=e.statement
            ) from e

        await self._create_indexes(table, gen)

    def _old_column_fields(
        self, table: TableDefinition, info: CatalogTableInfo
    ) -> list[Field]:
        """Nullable stand-ins for catalog columns that lost their field."""
        fields = []
        for name, col in info.columns.items():
            if table.get_field(name):
                continue
            dbtype = col.type
            if col.default_value is not None:
                dbtype += f" DEFAULT({col.default_value})"
            fields.append(Field(name=name, dbtype=dbtype))
        return fields

    async def _create_indexes(self, table: TableDefinition, gen: StatementGenerator) -> None:
        await asyncio.gather(
            *(
                self._exec(table, f"create index '{name}'", gen.create_index(name))
                for name in table.index_map
            )
        )

    async def _exec(self, table: TableDefinition, action: str, sql: str) -> None:
        logger.debug(f"table '{table.name}': {action}: {sql}")
        try:
            await self._session.execute(sql)
        except DriverError as e:
            raise UpgradeExecutionError(table.name, action, e, statement=sql) from e


def _pragma_flag(row: Optional[dict[str, Any]]) -> str:
    if row and next(iter(row.values()), 0):
        return "ON"
    return "OFF"
