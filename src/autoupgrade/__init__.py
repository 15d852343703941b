"""Keep SQLite tables in sync with declared table definitions."""

from autoupgrade.exceptions import (
    AutoUpgradeError,
    DefinitionError,
    DriverError,
    ParseError,
    UpgradeBatchError,
)
from autoupgrade.schema.models import Schema, TableBuilder, TableDefinition
from autoupgrade.sqlite.session import SqliteSession
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade import AutoUpgrader, UpgradeInfo, UpgradeOptions

__all__ = [
    "AutoUpgradeError",
    "AutoUpgrader",
    "DefinitionError",
    "DriverError",
    "ParseError",
    "Schema",
    "SqliteSession",
    "TableBuilder",
    "TableDefinition",
    "UpgradeBatchError",
    "UpgradeInfo",
    "UpgradeMode",
    "UpgradeOptions",
]
