"""
Postgres Connection Pool

Async connection pooling for PostgreSQL (including Aurora PostgreSQL) with
retrying pool creation.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import asyncpg
from asyncpg import Pool
from asyncpg.exceptions import (
    CannotConnectNowError,
    TooManyConnectionsError,
)

from cutoverbench.connectors.base import Connection, ConnectionProvider, convert_placeholders

logger = logging.getLogger(__name__)

_HOST_EXPR = (
    "COALESCE(host(inet_server_addr()), 'local') || ':' || "
    "COALESCE(inet_server_port()::text, '-')"
)


class PostgresConnection(Connection):
    """asyncpg connection adapter."""

    def __init__(self, conn: asyncpg.Connection, timeout: Optional[float] = None):
        self._conn = conn
        self._timeout = timeout

    async def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        status = await self._conn.execute(
            convert_placeholders(statement, "numeric"), *(params or ()), timeout=self._timeout
        )
        # Status strings look like "INSERT 0 1" or "UPDATE 5"; last token is the row count.
        if status:
            parts = str(status).split()
            if len(parts) >= 2:
                try:
                    return int(parts[-1])
                except ValueError:
                    pass
        return 0

    async def fetch(
        self, statement: str, params: Optional[Sequence[Any]] = None
    ) -> list[tuple]:
        rows = await self._conn.fetch(
            convert_placeholders(statement, "numeric"), *(params or ()), timeout=self._timeout
        )
        return [tuple(row.values()) for row in rows]


class PostgresConnectionPool(ConnectionProvider):
    """
    Async connection pool for Postgres with retry on pool creation.
    """

    engine = "postgres"

    host_query = f"SELECT {_HOST_EXPR}"
    introspection_query = (
        f"SELECT {_HOST_EXPR} AS hostname, pg_backend_pid() AS backend_pid, "
        "current_setting('server_version') AS version, "
        "pg_is_in_recovery()::int AS read_only"
    )
    introspection_columns = ("hostname", "backend_pid", "version", "read_only")
    version_query = f"SELECT current_setting('server_version'), {_HOST_EXPR}"

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_size: int = 5,
        max_size: int = 20,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        command_timeout: float = 30.0,
        connect_timeout: float = 30.0,
        pool_name: str = "workload",
    ):
        """
        Initialize Postgres connection pool.

        Args:
            host: Database host (cluster endpoint)
            port: Database port
            database: Database name
            user: Username
            password: Password
            min_size: Minimum pool size
            max_size: Maximum pool size
            max_retries: Max retry attempts for pool creation
            retry_delay: Delay between retries in seconds
            command_timeout: Per-statement timeout in seconds
            connect_timeout: Connection establishment timeout in seconds
            pool_name: Descriptive name for logging
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_size = min(min_size, max_size)
        self.max_size = max_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout
        self.pool_name = pool_name

        self._pool: Optional[Pool] = None
        self._initialized = False

        logger.info(
            f"[{pool_name}] Postgres pool configured: {self.describe()}, "
            f"size={self.min_size}-{max_size}"
        )

    def describe(self) -> str:
        return f"postgresql://{self.user}:***@{self.host}:{self.port}/{self.database}"

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        if self._initialized:
            return

        logger.info(f"[{self.pool_name}] Creating Postgres connection pool...")

        for attempt in range(self.max_retries):
            try:
                self._pool = await asyncpg.create_pool(
                    host=self.host,
                    port=self.port,
                    database=self.database,
                    user=self.user,
                    password=self.password,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                    timeout=self.connect_timeout,
                )

                self._initialized = True
                logger.info(
                    f"[{self.pool_name}] Postgres pool ready "
                    f"(size: {self.min_size}-{self.max_size})"
                )
                return

            except (CannotConnectNowError, TooManyConnectionsError, OSError) as e:
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"Pool creation attempt {attempt + 1} failed, retrying: {e}"
                    )
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error(
                        f"Failed to create pool after {self.max_retries} attempts"
                    )
                    raise

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        if not self._initialized:
            await self.initialize()

        if self._pool is None:
            raise RuntimeError("Pool not initialized")

        async with self._pool.acquire() as conn:
            yield PostgresConnection(conn)

    async def get_pool_stats(self) -> dict[str, Any]:
        """
        Get connection pool statistics.

        Returns:
            Dict with pool statistics
        """
        if not self._initialized or self._pool is None:
            return {
                "initialized": False,
                "size": 0,
                "max_size": self.max_size,
                "in_use": 0,
                "free": 0,
            }

        size = self._pool.get_size()
        free = self._pool.get_idle_size()
        return {
            "initialized": True,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "size": size,
            "free": free,
            "in_use": size - free,
        }

    def create_table_statement(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "id BIGSERIAL PRIMARY KEY, "
            "col1 VARCHAR(64), col2 INTEGER, col3 VARCHAR(64), "
            "col4 BIGINT, col5 VARCHAR(64), "
            "created_at TIMESTAMPTZ DEFAULT now())"
        )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            logger.info(f"[{self.pool_name}] Closing Postgres connection pool...")
            await self._pool.close()
            self._pool = None
            self._initialized = False
            logger.info(f"[{self.pool_name}] Postgres pool closed")
