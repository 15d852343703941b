"""Classify the change needed to bring a table in line with its definition."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from autoupgrade.schema.catalog import CatalogTableInfo
from autoupgrade.schema.dbtype import collapse_quoted_literal
from autoupgrade.schema.models import TableDefinition
from autoupgrade.types import UpgradeMode

__all__ = ["UpgradeOptions", "UpgradeInfo", "UpgradePlanner"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpgradeOptions:
    """Caller switches for an upgrade.

    Args:
        keep_old_columns: Keep catalog columns without a declared field (as
            nullable) instead of dropping them
        force_recreate: Always rebuild the table
    """

    keep_old_columns: Optional[bool] = None
    force_recreate: Optional[bool] = None

    def merged(self, other: Optional["UpgradeOptions"]) -> "UpgradeOptions":
        """Return these options overridden by every field set in `other`."""
        if other is None:
            return self
        overrides = {k: v for k, v in vars(other).items() if v is not None}
        return replace(self, **overrides)


@dataclass(frozen=True)
class UpgradeInfo:
    """Planning result. `table_info` is None exactly when the mode is CREATE."""

    table_info: Optional[CatalogTableInfo]
    upgrade_mode: UpgradeMode
    opts: UpgradeOptions = UpgradeOptions()

    @property
    def keep_old_columns(self) -> bool:
        return bool(self.opts.keep_old_columns)


class UpgradePlanner:
    """Compare a definition with the catalog and pick the upgrade mode.

    Checks run in a fixed order and the first hit wins: structural changes
    SQLite cannot apply in place (foreign keys, dropped or changed columns,
    primary key, autoincrement) lead to RECREATE, additive ones (new columns,
    index changes) to ALTER.
    """

    def __init__(self, defaults: Optional[UpgradeOptions] = None) -> None:
        self.defaults = defaults or UpgradeOptions()

    def plan(
        self,
        table: TableDefinition,
        table_info: Optional[CatalogTableInfo],
        opts: Optional[UpgradeOptions] = None,
    ) -> UpgradeInfo:
        table.validate()
        opts = self.defaults.merged(opts)
        mode, reason = self._classify(table, table_info, opts)
        logger.debug(f"table '{table.name}': {mode.value} ({reason})")
        return UpgradeInfo(table_info=table_info, upgrade_mode=mode, opts=opts)

    def _classify(
        self,
        table: TableDefinition,
        info: Optional[CatalogTableInfo],
        opts: UpgradeOptions,
    ) -> tuple[UpgradeMode, str]:
        if info is None:
            return UpgradeMode.CREATE, "does not exist"
        if opts.force_recreate:
            return UpgradeMode.RECREATE, "forcing recreate"

        reason = self._foreign_keys_changed(table, info)
        if reason:
            return UpgradeMode.RECREATE, reason

        reason, kept_columns = self._columns_changed(table, info, bool(opts.keep_old_columns))
        if reason:
            return UpgradeMode.RECREATE, reason

        reason = self._primary_key_changed(table, info)
        if reason:
            return UpgradeMode.RECREATE, reason

        if (table.auto_increment_field is not None) != info.auto_increment:
            return UpgradeMode.RECREATE, "autoincrement changed"

        if len(info.columns) - kept_columns != len(table.fields):
            return UpgradeMode.ALTER, "column(s) added"

        reason = self._indexes_changed(table, info)
        if reason:
            return UpgradeMode.ALTER, reason

        return UpgradeMode.ACTUAL, "up to date"

    def _foreign_keys_changed(
        self, table: TableDefinition, info: CatalogTableInfo
    ) -> Optional[str]:
        if len(table.foreign_keys) != len(info.foreign_keys):
            return "foreign key added or removed"
        for fk in table.foreign_keys:
            if fk.id not in info.foreign_keys:
                return f"foreign key definition for '{fk.name}' changed"
        return None

    def _columns_changed(
        self, table: TableDefinition, info: CatalogTableInfo, keep_old_columns: bool
    ) -> tuple[Optional[str], int]:
        """Return (reason, number of kept old columns)."""
        kept = 0
        for col_name, col in info.columns.items():
            fld = table.get_field(col_name)
            if fld is None:
                if not keep_old_columns:
                    return f"column dropped '{col_name}'", kept
                if col.not_null:
                    return f"column to keep '{col_name}' is not nullable", kept
                kept += 1
                continue
            declared = fld.type_info
            # WITHOUT ROWID tables force NOT NULL on their primary key columns
            not_null = declared.not_null or (table.without_rowid and fld.is_identity)
            if (
                declared.type_affinity != col.type_affinity
                or not_null != col.not_null
                or declared.default_value != collapse_quoted_literal(col.default_value)
            ):
                return f"column changed '{col_name}'", kept
        return None, kept

    def _primary_key_changed(
        self, table: TableDefinition, info: CatalogTableInfo
    ) -> Optional[str]:
        identity = table.identity_fields
        if len(identity) != len(info.primary_key):
            return "primary key column added or removed"
        for fld, pk_col in zip(identity, info.primary_key):
            if fld.name != pk_col:
                return "primary key column changed"
        return None

    def _indexes_changed(
        self, table: TableDefinition, info: CatalogTableInfo
    ) -> Optional[str]:
        if len(info.indexes) != len(table.indexes):
            return "indexes added or removed"
        for name, idx_info in info.indexes.items():
            idx = table.get_index(name)
            if idx is None:
                return f"index '{name}' dropped"
            if idx_info.column_names != idx.column_names:
                return f"index '{name}' changed"
        return None
