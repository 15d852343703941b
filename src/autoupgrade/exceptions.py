"""Exception classes for autoupgrade."""

from typing import Optional

__all__ = [
    "AutoUpgradeError",
    "ParseError",
    "DbTypeParseError",
    "DefinitionError",
    "SchemaLoadError",
    "ConfigError",
    "IntrospectionError",
    "DriverError",
    "UpgradeExecutionError",
    "UpgradeBatchError",
    "InvariantError",
]


class AutoUpgradeError(Exception):
    """Base exception for autoupgrade."""


class ParseError(AutoUpgradeError):
    """Error parsing declared schema text."""


class DbTypeParseError(ParseError):
    """A declared column type could not be parsed."""

    def __init__(self, dbtype: str):
        self.dbtype = dbtype
        super().__init__(f"failed to parse column type '{dbtype}'")


class DefinitionError(AutoUpgradeError):
    """Table definition is structurally invalid."""

    def __init__(self, table_name: str, message: str):
        self.table_name = table_name
        super().__init__(f"table '{table_name}': {message}")


class SchemaLoadError(AutoUpgradeError):
    """Error loading table definition files."""


class ConfigError(AutoUpgradeError):
    """Error in configuration."""


class IntrospectionError(AutoUpgradeError):
    """Error reading the database catalog."""


class DriverError(AutoUpgradeError):
    """A statement was rejected by the database driver."""

    def __init__(self, message: str, statement: Optional[str] = None):
        self.statement = statement
        super().__init__(message)


class UpgradeExecutionError(DriverError):
    """A DDL/DML statement failed while upgrading a table."""

    def __init__(
        self,
        table_name: str,
        action: str,
        cause: Exception,
        statement: Optional[str] = None,
    ):
        self.table_name = table_name
        self.action = action
        super().__init__(
            f"table '{table_name}': {action} failed: {cause}", statement=statement
        )


class UpgradeBatchError(AutoUpgradeError):
    """More than one table of a batch failed to upgrade."""

    def __init__(self, errors: dict[str, BaseException]):
        self.errors = errors
        details = "; ".join(f"{name}: {err}" for name, err in errors.items())
        super().__init__(f"{len(errors)} tables failed to upgrade: {details}")


class InvariantError(AutoUpgradeError):
    """Internal invariant violated (a bug, never a user error)."""
