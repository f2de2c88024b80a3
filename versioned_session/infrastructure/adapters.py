"""Adapters to convert between SQLAlchemy connections and generic interfaces."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from ..core.abstractions import IDatabaseConnection, Statement
from ..core.exceptions import QueryException, TransactionException

logger = logging.getLogger(__name__)


class SqlAlchemyConnectionAdapter(IDatabaseConnection):
    """Adapter to wrap a pinned AsyncConnection with the generic interface.

    Outside an explicit transaction every statement is committed as soon as it
    has run, so stored procedures and DDL take effect immediately.
    """

    def __init__(self, connection: AsyncConnection):
        self._conn = connection
        self._in_transaction = False
        self._closed = False

    async def _run(self, query: Statement, params: Optional[Dict[str, Any]]) -> CursorResult:
        statement = text(query) if isinstance(query, str) else query
        try:
            if params:
                result = await self._conn.execute(statement, params)
            else:
                result = await self._conn.execute(statement)
        except DBAPIError as e:
            await self._fail(e, statement, params)
        return result

    async def _finish(self, query: Statement, params: Optional[Dict[str, Any]]) -> None:
        if self._in_transaction or not self._conn.in_transaction():
            return
        try:
            await self._conn.commit()
        except DBAPIError as e:
            await self._fail(e, query, params)

    async def _fail(self, error: DBAPIError, query: Statement, params: Optional[Dict[str, Any]]) -> None:
        """Roll back an implicit transaction and raise the engine error as a QueryException."""
        if not self._in_transaction and self._conn.in_transaction():
            await self._conn.rollback()
        reason = str(error.orig) if error.orig is not None else str(error)
        raise QueryException(reason, statement=str(query), params=params) from error

    async def execute(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> int:
        """Execute a statement and return the affected row count."""
        result = await self._run(query, params)
        rowcount = result.rowcount
        await self._finish(query, params)
        return rowcount

    async def fetch(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return all rows as list of dictionaries."""
        result = await self._run(query, params)
        rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
        await self._finish(query, params)
        return rows

    async def fetchrow(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute a query and return a single row as a dictionary."""
        rows = await self.fetch(query, params)
        return rows[0] if rows else None

    async def fetchval(self, query: Statement, params: Optional[Dict[str, Any]] = None, column: int = 0) -> Any:
        """Execute a query and return a single value."""
        row = await self.fetchrow(query, params)
        if row is None:
            return None
        return list(row.values())[column]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Start a database transaction."""
        if self._in_transaction:
            raise TransactionException("Nested transactions are not supported")
        # Close out the implicit transaction left by autobegin
        if self._conn.in_transaction():
            await self._conn.commit()

        self._in_transaction = True
        try:
            async with self._conn.begin():
                yield
        finally:
            self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def close(self) -> None:
        """Return the connection to the pool."""
        if self._closed:
            return
        self._closed = True
        await self._conn.close()
