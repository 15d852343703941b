"""Async SQLite session used by the catalog reader and the upgrader."""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Optional, Protocol

import aiosqlite

from autoupgrade.exceptions import DriverError

logger = logging.getLogger(__name__)

Params = Optional[dict[str, Any]]

_transaction_owner: ContextVar[Optional["SqliteSession"]] = ContextVar(
    "autoupgrade_transaction_owner", default=None
)


class SQLSession(Protocol):
    """Capabilities the upgrader needs from a database session."""

    async def execute(self, sql: str, params: Params = None) -> None: ...

    async def fetchall(self, sql: str, params: Params = None) -> list[dict[str, Any]]: ...

    async def fetchone(self, sql: str, params: Params = None) -> Optional[dict[str, Any]]: ...

    def transaction(self) -> Any: ...


class SqliteSession:
    """Thin wrapper around an aiosqlite connection.

    The connection runs in autocommit mode; `transaction()` issues explicit
    BEGIN IMMEDIATE / COMMIT / ROLLBACK. Statements are serialized through a
    lock that a running transaction holds, so concurrent callers never land
    inside another caller's transaction.
    """

    def __init__(self, database: str, timeout: float = 5.0) -> None:
        self._database = database
        self._timeout = timeout
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock: Optional[asyncio.Lock] = None

    async def connect(self) -> None:
        """Open the connection. Must be called before any statement."""
        if self._connection is not None:
            raise RuntimeError("Already connected. Call close() before reconnecting.")
        self._connection = await aiosqlite.connect(
            self._database, timeout=self._timeout, isolation_level=None
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()
        logger.debug(f"opened database '{self._database}'")

    async def close(self) -> None:
        if self._connection is not None:
            try:
                await self._connection.close()
            finally:
                self._connection = None
                self._lock = None

    async def __aenter__(self) -> "SqliteSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def execute(self, sql: str, params: Params = None) -> None:
        async with self._serialized():
            await self._run(sql, params)

    async def fetchall(self, sql: str, params: Params = None) -> list[dict[str, Any]]:
        async with self._serialized():
            return await self._query(sql, params)

    async def fetchone(self, sql: str, params: Params = None) -> Optional[dict[str, Any]]:
        rows = await self.fetchall(sql, params)
        return rows[0] if rows else None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqliteSession"]:
        """Run the enclosed statements as one atomic unit.

        Any exception inside the block rolls the transaction back and is
        re-raised unchanged.
        """
        if _transaction_owner.get() is self:
            raise RuntimeError("Nested transactions are not supported.")
        async with self._serialized():
            token = _transaction_owner.set(self)
            try:
                await self._run("BEGIN IMMEDIATE TRANSACTION")
                try:
                    yield self
                except BaseException:
                    try:
                        await self._run("ROLLBACK TRANSACTION")
                    except DriverError as rollback_error:
                        logger.error(f"rollback failed: {rollback_error}")
                    raise
                await self._run("COMMIT TRANSACTION")
            finally:
                _transaction_owner.reset(token)

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[None]:
        if self._connection is None or self._lock is None:
            raise RuntimeError("Not connected. Call connect() first.")
        if _transaction_owner.get() is self:
            yield
            return
        async with self._lock:
            yield

    async def _run(self, sql: str, params: Params = None) -> None:
        try:
            async with self._connection.execute(sql, params or {}):
                pass
        except sqlite3.Error as e:
            raise DriverError(f"{e} (statement: {sql})", statement=sql) from e

    async def _query(self, sql: str, params: Params = None) -> list[dict[str, Any]]:
        try:
            async with self._connection.execute(sql, params or {}) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise DriverError(f"{e} (statement: {sql})", statement=sql) from e
        return [dict(row) for row in rows]
