"""Configuration management for autoupgrade."""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from autoupgrade.exceptions import ConfigError
from autoupgrade.upgrade.planner import UpgradeOptions

CONFIG_FILE_NAME = ".autoupgrade.cfg"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str, name: str) -> bool:
    """Parse a boolean setting such as 'yes' or '0'."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean value for {name}: '{value}'")


def load_profile(profile: str = "DEFAULT", path: Optional[Path] = None) -> dict[str, str]:
    """Load settings from a profile section of ~/.autoupgrade.cfg.

    Args:
        profile: Section name to load (default: "DEFAULT")
        path: Config file to read instead of ~/.autoupgrade.cfg

    Returns:
        Dict with any of database, schema_dir, keep_old_columns, force_recreate

    Raises:
        ConfigError: If the profile doesn't exist in an existing file
    """
    cfg_path = path or Path.home() / CONFIG_FILE_NAME
    if not cfg_path.exists():
        return {}

    config = configparser.ConfigParser()
    config.read(cfg_path)

    if profile != "DEFAULT" and profile not in config:
        available = [s for s in config.sections()] or ["DEFAULT"]
        raise ConfigError(
            f"Profile '{profile}' not found in {cfg_path}. "
            f"Available profiles: {', '.join(available)}"
        )

    section = config[profile]
    return {
        key: section[key].strip()
        for key in ("database", "schema_dir", "keep_old_columns", "force_recreate")
        if key in section
    }


@dataclass
class Config:
    """Configuration for autoupgrade."""

    database: Optional[str] = None
    schema_dir: str = "schema"
    keep_old_columns: bool = False
    force_recreate: bool = False

    @classmethod
    def from_env(
        cls,
        *,
        database: Optional[str] = None,
        schema_dir: Optional[str] = None,
        keep_old_columns: Optional[bool] = None,
        force_recreate: Optional[bool] = None,
        profile: Optional[str] = None,
        config_path: Optional[Path] = None,
    ) -> "Config":
        """Load configuration from the profile file and env vars, with overrides.

        Priority (highest to lowest):
        1. Explicit parameters (CLI args)
        2. Environment variables (AUTOUPGRADE_*)
        3. ~/.autoupgrade.cfg profile
        """
        profile_name = profile or os.environ.get("AUTOUPGRADE_PROFILE", "DEFAULT")
        file_cfg = load_profile(profile_name, config_path)

        def resolve(explicit, env_key, cfg_key):
            if explicit is not None:
                return explicit
            env_val = os.environ.get(env_key)
            if env_val is not None:
                return env_val
            return file_cfg.get(cfg_key)

        def resolve_bool(explicit, env_key, cfg_key) -> bool:
            value = resolve(explicit, env_key, cfg_key)
            if value is None:
                return False
            if isinstance(value, bool):
                return value
            return parse_bool(value, env_key)

        return cls(
            database=resolve(database, "AUTOUPGRADE_DATABASE", "database"),
            schema_dir=resolve(schema_dir, "AUTOUPGRADE_SCHEMA_DIR", "schema_dir")
            or "schema",
            keep_old_columns=resolve_bool(
                keep_old_columns, "AUTOUPGRADE_KEEP_OLD_COLUMNS", "keep_old_columns"
            ),
            force_recreate=resolve_bool(
                force_recreate, "AUTOUPGRADE_FORCE_RECREATE", "force_recreate"
            ),
        )

    def upgrade_options(self) -> UpgradeOptions:
        """Default options for upgrades run with this configuration."""
        return UpgradeOptions(
            keep_old_columns=self.keep_old_columns, force_recreate=self.force_recreate
        )

    def validate_for_db_ops(self) -> None:
        """Validate that a database is configured.

        Raises:
            ConfigError: If the database path is missing.
        """
        if not self.database:
            raise ConfigError(
                "Missing required configuration:\n"
                "  - database (use --database or AUTOUPGRADE_DATABASE)"
            )
