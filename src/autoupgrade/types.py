"""Core type definitions for autoupgrade."""

from enum import Enum
from typing import TypeAlias

TableName: TypeAlias = str
ColumnName: TypeAlias = str
IndexName: TypeAlias = str
SchemaName: TypeAlias = str

SQL_DEFAULT_SCHEMA: SchemaName = "main"

__all__ = [
    "TableName",
    "ColumnName",
    "IndexName",
    "SchemaName",
    "SQL_DEFAULT_SCHEMA",
    "TypeAffinity",
    "UpgradeMode",
]


class TypeAffinity(Enum):
    """SQLite column type affinities."""

    INTEGER = "INTEGER"
    TEXT = "TEXT"
    BLOB = "BLOB"
    REAL = "REAL"
    NUMERIC = "NUMERIC"


class UpgradeMode(Enum):
    """Action required to bring a table in line with its definition."""

    ACTUAL = "actual"
    CREATE = "create"
    ALTER = "alter"
    RECREATE = "recreate"
