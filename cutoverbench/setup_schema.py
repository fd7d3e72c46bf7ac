"""
Schema Setup

Creates the write-target tables (test_0001 .. test_NNNN) before a run.
Every statement is idempotent (CREATE TABLE IF NOT EXISTS).
"""

import asyncio
import logging

from cutoverbench.connectors.base import ConnectionProvider
from cutoverbench.models import WorkloadConfig

logger = logging.getLogger(__name__)


async def create_test_tables(
    provider: ConnectionProvider,
    config: WorkloadConfig,
    *,
    concurrency: int = 8,
    progress_every: int = 1000,
) -> int:
    """
    Create `config.table_count` tables.

    Args:
        provider: Initialized connection provider
        config: Supplies table_count and table_prefix
        concurrency: Parallel DDL connections
        progress_every: Log progress after this many tables

    Returns:
        Number of CREATE statements executed
    """
    total = config.table_count
    logger.info("Creating %d test tables (%s0001..)...", total, config.table_prefix)

    next_id = 1
    created = 0

    async def _worker() -> None:
        nonlocal next_id, created
        async with provider.acquire() as conn:
            while True:
                if next_id > total:
                    return
                table_id = next_id
                next_id += 1
                await conn.execute(
                    provider.create_table_statement(config.table_name(table_id))
                )
                created += 1
                if created % progress_every == 0:
                    logger.info("Created %d/%d tables", created, total)

    await asyncio.gather(*(_worker() for _ in range(max(1, min(concurrency, total)))))
    logger.info("Test tables ready (%d)", created)
    return created
