"""SQLite session support."""

from autoupgrade.sqlite.session import SQLSession, SqliteSession

__all__ = ["SQLSession", "SqliteSession"]
