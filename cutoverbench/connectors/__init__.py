"""
Database connection providers.
"""

from typing import Any

from cutoverbench.connectors.base import Connection, ConnectionProvider


def create_connection_provider(engine: str, **kwargs: Any) -> ConnectionProvider:
    """
    Build the pooled provider for an engine.

    Drivers are imported lazily so only the selected engine's driver has to
    load.
    """
    engine_l = (engine or "").strip().lower()
    if engine_l == "postgres":
        from cutoverbench.connectors.postgres_pool import PostgresConnectionPool

        kwargs.pop("aurora", None)
        return PostgresConnectionPool(**kwargs)
    if engine_l == "mysql":
        from cutoverbench.connectors.mysql_pool import MySQLConnectionPool

        kwargs.pop("command_timeout", None)
        return MySQLConnectionPool(**kwargs)
    raise ValueError(f"Unsupported engine: {engine!r}")


__all__ = ["Connection", "ConnectionProvider", "create_connection_provider"]
