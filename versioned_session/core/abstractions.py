"""Generic database abstraction interfaces."""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, List, Optional, Union

from sqlalchemy.sql import Executable

Statement = Union[str, Executable]


class IDatabaseConnection(ABC):
    """A single connection that keeps its session state between statements."""

    @abstractmethod
    async def execute(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> int:
        """Execute a statement and return the affected row count."""
        pass

    @abstractmethod
    async def fetch(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return all rows as list of dictionaries."""
        pass

    @abstractmethod
    async def fetchrow(self, query: Statement, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute a query and return a single row as a dictionary."""
        pass

    @abstractmethod
    async def fetchval(self, query: Statement, params: Optional[Dict[str, Any]] = None, column: int = 0) -> Any:
        """Execute a query and return a single value."""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Run the enclosed statements as one transaction."""
        pass

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether an explicit transaction is open."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Return the connection to its pool."""
        pass
