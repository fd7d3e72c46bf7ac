"""
Connection Provider Interface

The workload engine consumes a pooled connection provider as an opaque
capability: acquire a connection, run a statement, release it. Concrete
providers wrap asyncpg (PostgreSQL) and aiomysql (MySQL/Aurora MySQL).

Statements use `?` placeholders; each provider converts them to its
driver's parameter style.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Optional, Sequence

from cutoverbench.exceptions import ConnectivityError

logger = logging.getLogger(__name__)


WRITE_COLUMNS = ("col1", "col2", "col3", "col4", "col5")


class Connection(ABC):
    """A checked-out connection. Only valid inside `provider.acquire()`."""

    @abstractmethod
    async def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute DML/DDL and return the number of rows affected."""

    @abstractmethod
    async def fetch(
        self, statement: str, params: Optional[Sequence[Any]] = None
    ) -> list[tuple]:
        """Execute a query and return all rows as tuples."""


class ConnectionProvider(ABC):
    """
    Pooled connection source shared by every worker.

    Implementations must make acquire/release safe under concurrent use and
    must release the connection on every exit path of `acquire()`.
    """

    engine: str = ""
    pool_name: str = "workload"

    # Query returning one row whose first column is the serving host identity.
    host_query: str = ""
    # Read-workload query; first column must be the host identity.
    introspection_query: str = ""
    introspection_columns: tuple[str, ...] = ()
    # Startup check returning (version, host).
    version_query: str = ""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the underlying pool."""

    @abstractmethod
    def acquire(self) -> AbstractAsyncContextManager[Connection]:
        """
        Check out a connection (async context manager).

        Usage:
            async with provider.acquire() as conn:
                rows = await conn.fetch("SELECT 1")
        """

    @abstractmethod
    async def get_pool_stats(self) -> dict[str, Any]:
        """Return pool occupancy: initialized, size, max_size, in_use, free."""

    @abstractmethod
    async def close(self) -> None:
        """Close the pool."""

    @abstractmethod
    def create_table_statement(self, table: str) -> str:
        """DDL creating one write-target table if it does not exist."""

    def describe(self) -> str:
        """Connection target for logging (no credentials)."""
        return self.engine

    def insert_statement(self, table: str) -> str:
        placeholders = ", ".join("?" for _ in WRITE_COLUMNS)
        return f"INSERT INTO {table} ({', '.join(WRITE_COLUMNS)}) VALUES ({placeholders})"

    async def test_connection(self) -> tuple[str, str]:
        """
        Verify connectivity before any worker starts.

        Returns:
            (server_version, host_identity)

        Raises:
            ConnectivityError: if no connection could be established
        """
        logger.info(f"[{self.pool_name}] Testing database connection...")
        try:
            async with self.acquire() as conn:
                rows = await conn.fetch(self.version_query)
        except Exception as e:
            logger.error(f"[{self.pool_name}] Connection test failed: {e}")
            raise ConnectivityError(f"Connection test failed: {e}") from e

        if not rows:
            raise ConnectivityError("Connection test returned no rows")

        version, host = str(rows[0][0]), str(rows[0][1])
        logger.info(
            f"[{self.pool_name}] Connected successfully to version {version} on host {host}"
        )
        return version, host


def convert_placeholders(query: str, style: str) -> str:
    """
    Convert `?` placeholders to a driver's parameter style.

    Args:
        query: SQL using `?` placeholders
        style: "numeric" for `$1, $2, ...` (asyncpg) or "format" for `%s` (aiomysql)

    `?` characters inside quoted string literals are left alone.
    """
    result = []
    idx = 0
    i = 0
    in_string = False
    string_char = None

    while i < len(query):
        ch = query[i]

        # Track string literals to avoid converting ? inside them
        if ch in ("'", '"') and (i == 0 or query[i - 1] != "\\"):
            if not in_string:
                in_string = True
                string_char = ch
            elif ch == string_char:
                in_string = False
                string_char = None

        if ch == "?" and not in_string:
            idx += 1
            result.append(f"${idx}" if style == "numeric" else "%s")
        else:
            result.append(ch)
        i += 1

    return "".join(result)
