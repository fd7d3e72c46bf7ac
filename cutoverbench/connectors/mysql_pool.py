"""
MySQL Connection Pool

Async connection pooling for MySQL and Aurora MySQL with retrying pool
creation. Mirrors PostgresConnectionPool so the workload engine can treat
both engines alike.
"""

import asyncio
import logging
import warnings
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import aiomysql

from cutoverbench.connectors.base import Connection, ConnectionProvider, convert_placeholders

# aiomysql raises warnings for "IF NOT EXISTS" DDL on existing tables.
warnings.filterwarnings("ignore", category=aiomysql.Warning)

logger = logging.getLogger(__name__)


class MySQLConnection(Connection):
    """aiomysql connection adapter."""

    def __init__(self, conn: aiomysql.Connection):
        self._conn = conn

    async def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        async with self._conn.cursor() as cur:
            await cur.execute(convert_placeholders(statement, "format"), params or None)
            return int(cur.rowcount or 0)

    async def fetch(
        self, statement: str, params: Optional[Sequence[Any]] = None
    ) -> list[tuple]:
        async with self._conn.cursor() as cur:
            await cur.execute(convert_placeholders(statement, "format"), params or None)
            rows = await cur.fetchall()
            return [tuple(row) for row in rows]


class MySQLConnectionPool(ConnectionProvider):
    """
    Async connection pool for MySQL with retry on pool creation.

    With `aurora=True` the version queries read `@@aurora_version`, which
    only exists on Aurora MySQL.
    """

    engine = "mysql"

    host_query = "SELECT @@hostname"

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
        connect_timeout: float = 30.0,
        aurora: bool = True,
        pool_name: str = "workload",
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_size = min(min_size, max_size)
        self.max_size = max_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.connect_timeout = connect_timeout
        self.aurora = aurora
        self.pool_name = pool_name

        version_var = "@@aurora_version" if aurora else "@@version"
        self.introspection_query = (
            f"SELECT @@hostname, @@server_id, {version_var}, @@read_only"
        )
        self.introspection_columns = ("hostname", "server_id", "version", "read_only")
        self.version_query = f"SELECT {version_var}, @@hostname"

        self._pool: Optional[aiomysql.Pool] = None
        self._initialized = False

        logger.info(
            f"[{pool_name}] MySQL pool configured: {self.describe()}, "
            f"size={self.min_size}-{max_size}"
        )

    def describe(self) -> str:
        return f"mysql://{self.user}:***@{self.host}:{self.port}/{self.database}"

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        if self._initialized:
            return

        logger.info(f"[{self.pool_name}] Creating MySQL connection pool...")

        for attempt in range(self.max_retries):
            try:
                self._pool = await aiomysql.create_pool(
                    host=self.host,
                    port=self.port,
                    db=self.database,
                    user=self.user,
                    password=self.password,
                    minsize=self.min_size,
                    maxsize=self.max_size,
                    connect_timeout=self.connect_timeout,
                    autocommit=True,
                    pool_recycle=1800,
                )

                self._initialized = True
                logger.info(
                    f"[{self.pool_name}] MySQL pool ready "
                    f"(size: {self.min_size}-{self.max_size})"
                )
                return

            except (aiomysql.OperationalError, OSError) as e:
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
            yield MySQLConnection(conn)

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

        size = self._pool.size
        free = self._pool.freesize
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
            "id BIGINT AUTO_INCREMENT PRIMARY KEY, "
            "col1 VARCHAR(64), col2 INT, col3 VARCHAR(64), "
            "col4 BIGINT, col5 VARCHAR(64), "
            "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            logger.info(f"[{self.pool_name}] Closing MySQL connection pool...")
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            self._initialized = False
            logger.info(f"[{self.pool_name}] MySQL pool closed")
