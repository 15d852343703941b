"""Helpers shared by the CLI for database operations.

Extracts common DB logic from the CLI for reuse and testability.
"""

from typing import Optional

from autoupgrade.config import Config
from autoupgrade.schema.catalog import CatalogTableInfo
from autoupgrade.schema.introspect import CatalogIntrospector
from autoupgrade.schema.models import Schema
from autoupgrade.sqlite.session import SqliteSession
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.planner import UpgradeOptions
from autoupgrade.upgrade.upgrader import AutoUpgrader


def build_config_and_validate(
    *,
    database: Optional[str] = None,
    schema_dir: Optional[str] = None,
    keep_old_columns: Optional[bool] = None,
    force_recreate: Optional[bool] = None,
    profile: Optional[str] = None,
) -> Config:
    """Load config from ~/.autoupgrade.cfg/env and validate for DB operations.

    Raises:
        ConfigError: If required configuration is missing.
    """
    config = Config.from_env(
        database=database,
        schema_dir=schema_dir,
        keep_old_columns=keep_old_columns,
        force_recreate=force_recreate,
        profile=profile,
    )
    config.validate_for_db_ops()
    return config


async def plan_schema(
    config: Config, schema: Schema, opts: Optional[UpgradeOptions] = None
) -> dict[str, UpgradeMode]:
    """Plan every table of a schema against the configured database.

    Returns:
        Upgrade mode per table name, in schema order.
    """
    config.validate_for_db_ops()
    async with SqliteSession(config.database) as session:
        upgrader = AutoUpgrader(session, defaults=config.upgrade_options())
        modes = {}
        for table in schema.all_tables():
            info = await upgrader.get_upgrade_info(table, opts)
            modes[table.name] = info.upgrade_mode
        return modes


async def upgrade_schema(
    config: Config, schema: Schema, opts: Optional[UpgradeOptions] = None
) -> None:
    """Upgrade every table of a schema in the configured database."""
    config.validate_for_db_ops()
    async with SqliteSession(config.database) as session:
        upgrader = AutoUpgrader(session, defaults=config.upgrade_options())
        await upgrader.upgrade_all_tables(schema, opts)


async def read_table_info(config: Config, table_name: str) -> Optional[CatalogTableInfo]:
    config.validate_for_db_ops()
    async with SqliteSession(config.database) as session:
        return await CatalogIntrospector(session).read_table_info(table_name)
