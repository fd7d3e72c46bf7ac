"""
Global pytest configuration and fixtures for CutoverBench tests.

This module provides:
- StubConnectionProvider: an in-memory connection provider with scriptable
  failures and host identity
- FakeClock: a manually advanced monotonic clock
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Sequence

import pytest

from cutoverbench.connectors.base import Connection, ConnectionProvider

# =============================================================================
# Stub connection provider
# =============================================================================


class StubError(Exception):
    """Driver-like error carrying an optional MySQL errno in args[0]."""

    def __init__(self, message: str, errno: Optional[int] = None):
        if errno is None:
            super().__init__(message)
        else:
            super().__init__(errno, message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class StubConnection(Connection):
    def __init__(self, provider: "StubConnectionProvider"):
        self._provider = provider

    async def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> int:
        self._provider.statements.append((statement, list(params or ())))
        return await self._provider._run(statement, is_fetch=False)

    async def fetch(
        self, statement: str, params: Optional[Sequence[Any]] = None
    ) -> list[tuple]:
        self._provider.statements.append((statement, list(params or ())))
        return await self._provider._run(statement, is_fetch=True)


class StubConnectionProvider(ConnectionProvider):
    """
    In-memory provider.

    - `failure`: exception (or callable returning one or None) raised by every
      statement while set
    - `host`: identity returned by host and introspection queries
    - `rows_affected`: value returned for writes
    - `latency`: seconds awaited per statement
    """

    engine = "stub"
    host_query = "SELECT @@hostname"
    introspection_query = "SELECT @@hostname, @@server_id, @@version, @@read_only"
    introspection_columns = ("hostname", "server_id", "version", "read_only")
    version_query = "SELECT @@version, @@hostname"

    def __init__(self, host: str = "blue-1"):
        self.host = host
        self.failure: Optional[BaseException | Callable[[], Optional[BaseException]]] = None
        self.rows_affected = 1
        self.latency = 0.0
        self.acquired = 0
        self.released = 0
        self.attempts = 0
        self.statements: list[tuple[str, list[Any]]] = []
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        self.acquired += 1
        try:
            yield StubConnection(self)
        finally:
            self.released += 1

    async def _run(self, statement: str, *, is_fetch: bool) -> Any:
        if statement.startswith(("INSERT", "SELECT @@hostname, @@server_id")):
            self.attempts += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        failure = self.failure() if callable(self.failure) else self.failure
        if failure is not None:
            raise failure
        if not is_fetch:
            return self.rows_affected
        if statement == self.version_query:
            return [("8.0.mysql_aurora.3.05.2", self.host)]
        if statement == self.introspection_query:
            return [(self.host, 1234, "8.0.mysql_aurora.3.05.2", 0)]
        return [(self.host,)]

    async def get_pool_stats(self) -> dict[str, Any]:
        in_use = self.acquired - self.released
        return {"initialized": self.initialized, "size": 10, "max_size": 10, "in_use": in_use, "free": 10 - in_use}

    async def close(self) -> None:
        self.closed = True

    def create_table_statement(self, table: str) -> str:
        return f"CREATE TABLE IF NOT EXISTS {table} (id INT)"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def stub_provider() -> StubConnectionProvider:
    return StubConnectionProvider()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
