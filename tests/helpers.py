"""Test utilities and helper functions."""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from unittest.mock import AsyncMock, Mock

from sqlalchemy.dialects import mysql
from sqlalchemy.sql.elements import TextClause

from versioned_session.core.exceptions import TransactionException

Route = Union[Any, BaseException, Callable[[Any, Optional[Dict[str, Any]]], Any]]


def render(statement: Any) -> str:
    """SQL text of a statement as the MySQL dialect would send it, on one line."""
    if isinstance(statement, str):
        return statement
    if isinstance(statement, TextClause):
        return statement.text
    return " ".join(str(statement.compile(dialect=mysql.dialect())).split())


def bound_values(statement: Any, params: Optional[Dict[str, Any]] = None) -> List[Any]:
    """Parameter values bound to a statement, in binding order."""
    if params:
        return list(params.values())
    if isinstance(statement, (str, TextClause)):
        return []
    return list(statement.compile(dialect=mysql.dialect()).params.values())


class Router:
    """Picks a canned result by matching a fragment of the rendered SQL."""

    def __init__(self, default: Any = None):
        self.default = default
        self._routes: List[Tuple[str, Route]] = []

    def add(self, fragment: str, result: Route) -> "Router":
        self._routes.append((fragment, result))
        return self

    def prepend(self, fragment: str, result: Route) -> "Router":
        self._routes.insert(0, (fragment, result))
        return self

    def __call__(self, statement: Any, params: Optional[Dict[str, Any]] = None, *args, **kwargs) -> Any:
        sql = render(statement)
        for fragment, result in self._routes:
            if fragment in sql:
                if isinstance(result, BaseException):
                    raise result
                if callable(result):
                    return result(statement, params)
                return result
        return self.default


def make_connection() -> Mock:
    """A mocked IDatabaseConnection with routed results and a tracked transaction."""
    conn = Mock()
    conn.in_transaction = False
    conn.commits = 0
    conn.rollbacks = 0

    conn.fetch_routes = Router(default=[])
    conn.fetchval_routes = Router(default=None)
    conn.execute_routes = Router(default=1)

    conn.fetch = AsyncMock(side_effect=conn.fetch_routes)
    conn.fetchval = AsyncMock(side_effect=conn.fetchval_routes)
    conn.execute = AsyncMock(side_effect=conn.execute_routes)
    conn.close = AsyncMock()

    @asynccontextmanager
    async def transaction():
        if conn.in_transaction:
            raise TransactionException("Nested transactions are not supported")
        conn.in_transaction = True
        try:
            yield
        except BaseException:
            conn.rollbacks += 1
            raise
        else:
            conn.commits += 1
        finally:
            conn.in_transaction = False

    conn.transaction = transaction
    return conn


def statements(conn: Mock, *methods: str) -> List[str]:
    """Rendered SQL of every statement sent to the connection, in order."""
    methods = methods or ("fetch", "fetchval", "execute")
    return [render(c[1][0]) for c in conn.mock_calls if c[0] in methods]
