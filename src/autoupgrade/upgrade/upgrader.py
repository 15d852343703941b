"""Upgrade batches of tables with foreign key enforcement suspended."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Union

from autoupgrade.exceptions import UpgradeBatchError
from autoupgrade.schema.introspect import CatalogIntrospector
from autoupgrade.schema.models import Schema, TableDefinition
from autoupgrade.sqlite.session import SQLSession
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.executor import UpgradeExecutor
from autoupgrade.upgrade.planner import UpgradeInfo, UpgradeOptions, UpgradePlanner

__all__ = ["AutoUpgrader"]

logger = logging.getLogger(__name__)

Tables = Union[TableDefinition, Iterable[TableDefinition]]


def _as_list(tables: Tables) -> list[TableDefinition]:
    if isinstance(tables, TableDefinition):
        return [tables]
    return list(tables)


class AutoUpgrader:
    """
    Keeps live tables in line with their definitions.

    Each table goes through introspect → plan → execute. Batches run
    concurrently on the one session; upgrading the same table twice in one
    batch (or in overlapping batches) is not supported.
    """

    def __init__(
        self, session: SQLSession, defaults: Optional[UpgradeOptions] = None
    ) -> None:
        self._session = session
        self._introspector = CatalogIntrospector(session)
        self._planner = UpgradePlanner(defaults)
        self._executor = UpgradeExecutor(session)

    @property
    def defaults(self) -> UpgradeOptions:
        return self._planner.defaults

    async def get_upgrade_info(
        self, table: TableDefinition, opts: Optional[UpgradeOptions] = None
    ) -> UpgradeInfo:
        """Read the live table and plan its upgrade."""
        table_info = await self._introspector.read_table_info(table.name)
        return self._planner.plan(table, table_info, opts)

    async def is_actual(
        self, tables: Tables, opts: Optional[UpgradeOptions] = None
    ) -> bool:
        """True if no table needs any change."""
        infos = await asyncio.gather(
            *(self.get_upgrade_info(t, opts) for t in _as_list(tables))
        )
        return all(info.upgrade_mode == UpgradeMode.ACTUAL for info in infos)

    async def upgrade_all_tables(
        self, schema: Schema, opts: Optional[UpgradeOptions] = None
    ) -> None:
        await self.upgrade_tables(schema.all_tables(), opts)

    async def upgrade_tables(
        self, tables: Tables, opts: Optional[UpgradeOptions] = None
    ) -> None:
        """
        Upgrade tables with foreign key enforcement switched off.

        Enforcement is restored afterwards even if an upgrade failed. A
        failing restore is only raised when every table succeeded.

        Raises:
            UpgradeBatchError: If more than one table failed
        """
        tables = _as_list(tables)
        fk_enabled = await self.foreign_key_enabled()
        if fk_enabled:
            await self.foreign_key_enable(False)

        error: Optional[BaseException] = None
        try:
            results = await asyncio.gather(
                *(self._upgrade_table(t, opts) for t in tables),
                return_exceptions=True,
            )
            failures = {
                t.name: r for t, r in zip(tables, results) if isinstance(r, BaseException)
            }
            if len(failures) == 1:
                error = next(iter(failures.values()))
            elif failures:
                error = UpgradeBatchError(failures)
        finally:
            if fk_enabled:
                try:
                    await self.foreign_key_enable(True)
                except Exception as restore_error:
                    if error is None:
                        error = restore_error
                    else:
                        logger.error(
                            f"failed to re-enable foreign key enforcement: {restore_error}"
                        )

        if error is not None:
            raise error

    async def _upgrade_table(
        self, table: TableDefinition, opts: Optional[UpgradeOptions]
    ) -> None:
        upgrade_info = await self.get_upgrade_info(table, opts)
        logger.info(f"table '{table.name}': {upgrade_info.upgrade_mode.value}")
        await self._executor.execute(table, upgrade_info)

    async def foreign_key_enabled(self) -> bool:
        """Current state of foreign key enforcement."""
        row = await self._session.fetchone("PRAGMA foreign_keys")
        return bool(row and row["foreign_keys"])

    async def foreign_key_enable(self, enable: bool) -> None:
        await self._session.execute(f"PRAGMA foreign_keys = {'TRUE' if enable else 'FALSE'}")
