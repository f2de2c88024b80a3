"""Database connection pool for the versioned SQL server."""

import logging
import ssl
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ..core.config import ConnectionConfig, TlsConfig
from ..core.exceptions import ConnectionException
from ..core.types import TlsMode
from .adapters import SqlAlchemyConnectionAdapter

logger = logging.getLogger(__name__)

DRIVER = "mysql+aiomysql"


def build_ssl_context(tls: TlsConfig) -> Optional[ssl.SSLContext]:
    """Build the SSL context for a TLS trust configuration."""
    if tls.mode == TlsMode.NONE:
        return None
    if tls.mode == TlsMode.CA_FILE:
        return ssl.create_default_context(cafile=tls.ca_file_path)

    context = ssl.create_default_context()
    if tls.mode == TlsMode.DISABLED:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_url(config: ConnectionConfig) -> URL:
    return URL.create(
        DRIVER,
        username=config.user,
        password=config.password or None,
        host=config.host,
        port=config.port,
        database=config.database,
    )


class DatabasePool:
    """Manages the connection pool.

    Connections are opened lazily, so a fresh pool holds no idle connections
    and never more than ``pool_max_size`` at once.
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._engine: Optional[AsyncEngine] = None

    def _connect_args(self) -> Dict[str, Any]:
        connect_args: Dict[str, Any] = {}
        ssl_context = build_ssl_context(self.config.tls)
        if ssl_context is not None:
            connect_args["ssl"] = ssl_context
        if self.config.connect_timeout is not None:
            connect_args["connect_timeout"] = self.config.connect_timeout
        return connect_args

    def initialize(self) -> None:
        """Create the engine. Nothing connects until the first acquire.

        Raises:
            ConnectionException: If the TLS trust material cannot be loaded
        """
        if self._engine is None:
            try:
                connect_args = self._connect_args()
            except OSError as e:
                # Unreadable or malformed CA file
                raise ConnectionException(self.config.host, self.config.port, f"TLS setup failed: {e}") from e

            self._engine = create_async_engine(
                build_url(self.config),
                echo=self.config.echo,
                pool_size=self.config.pool_max_size,
                max_overflow=0,
                pool_pre_ping=True,
                pool_recycle=3600,
                connect_args=connect_args,
            )
            logger.debug(
                f"Created pool for {self.config.host}:{self.config.port}/{self.config.database} "
                f"(max {self.config.pool_max_size}, tls={self.config.tls.mode.value})"
            )

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def acquire(self) -> SqlAlchemyConnectionAdapter:
        """Check out a connection that stays pinned until it is closed."""
        if self._engine is None:
            raise RuntimeError("Database pool not initialized")

        try:
            connection = await self._engine.connect()
        except (DBAPIError, OSError) as e:
            reason = str(getattr(e, "orig", None) or e)
            raise ConnectionException(self.config.host, self.config.port, reason) from e

        adapter = SqlAlchemyConnectionAdapter(connection)
        try:
            await adapter.fetchval(text("SELECT 1"))
        except Exception as e:
            await adapter.close()
            raise ConnectionException(self.config.host, self.config.port, str(e)) from e
        return adapter

    async def close(self) -> None:
        """Close all connections in the pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
