"""
Operation execution with bounded retry.

The executor absorbs every intermediate failure and only ever returns a
final OperationResult. Each attempt checks out exactly one pooled
connection, which is released on every exit path by the provider's scoped
`acquire()`.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from cutoverbench.connectors.base import Connection, ConnectionProvider
from cutoverbench.core.executor.helpers import (
    classify_error,
    error_category,
    format_read_result,
    sleep_unless_set,
    sql_error_meta_for_log,
    truncate_str_for_log,
)
from cutoverbench.core.executor.types import (
    ErrorClass,
    Operation,
    OperationKind,
    OperationResult,
)

if TYPE_CHECKING:
    from cutoverbench.core.phase_tracker import PhaseTracker

logger = logging.getLogger(__name__)
operations_logger = logging.getLogger("cutoverbench.operations")


class NoRowsAffectedError(Exception):
    """A statement completed but did not affect or return any row."""


class OperationExecutor:
    """Runs one logical operation with retry and backoff."""

    def __init__(
        self,
        provider: ConnectionProvider,
        *,
        phase_tracker: Optional["PhaseTracker"] = None,
        max_retries: int = 5,
        retry_base_delay_ms: float = 500.0,
        stop_event: Optional[asyncio.Event] = None,
        classifier: Callable[[BaseException], ErrorClass] = classify_error,
    ):
        """
        Args:
            provider: Pooled connection source
            phase_tracker: Receives the class of every failed attempt
            max_retries: Max attempts per operation (>= 1)
            retry_base_delay_ms: Backoff base delay
            stop_event: Shutdown signal; set means no further retries
            classifier: Maps a raw failure to an ErrorClass
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.provider = provider
        self.phase_tracker = phase_tracker
        self.max_retries = int(max_retries)
        self.retry_base_delay_ms = float(retry_base_delay_ms)
        self.stop_event = stop_event
        self.classifier = classifier

    def backoff_seconds(self, kind: OperationKind, attempt: int) -> float:
        """
        Delay after failed attempt number `attempt` (1-based).

        Writes back off linearly (base * attempt); reads double each time
        (base * 2^(attempt-1)).
        """
        base_s = self.retry_base_delay_ms / 1000.0
        if kind is OperationKind.WRITE:
            return base_s * attempt
        return base_s * (2 ** (attempt - 1))

    async def execute(self, op: Operation) -> OperationResult:
        """
        Execute `op` with at most `max_retries` attempts.

        Returns:
            OperationResult. On failure it carries the last error's class.
        """
        start = time.perf_counter()
        last_exc: Optional[BaseException] = None
        last_class: Optional[ErrorClass] = None
        attempts = 0

        for attempt in range(1, self.max_retries + 1):
            attempts = attempt
            try:
                async with self.provider.acquire() as conn:
                    if op.kind is OperationKind.WRITE:
                        host, detail, rows = await self._write(conn, op)
                    else:
                        host, detail, rows = await self._read(conn, op)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_exc = e
                last_class = self.classifier(e)
                if self.phase_tracker is not None:
                    self.phase_tracker.observe_error(last_class, str(e))

                if not last_class.retryable or attempt >= self.max_retries:
                    break

                delay = self.backoff_seconds(op.kind, attempt)
                operations_logger.warning(
                    "%s | %s | attempt %d/%d failed (%s): %s - retrying in %.0fms",
                    op.worker_label,
                    op.target,
                    attempt,
                    self.max_retries,
                    last_class.value,
                    truncate_str_for_log(e, max_chars=300),
                    delay * 1000.0,
                )
                if await sleep_unless_set(self.stop_event, delay):
                    break
                continue

            return OperationResult(
                success=True,
                latency_ms=(time.perf_counter() - start) * 1000.0,
                attempts=attempt,
                observed_host=host,
                detail=detail,
                rows_affected=rows,
            )

        latency_ms = (time.perf_counter() - start) * 1000.0
        assert last_exc is not None and last_class is not None
        meta = sql_error_meta_for_log(last_exc)
        return OperationResult(
            success=False,
            latency_ms=latency_ms,
            attempts=attempts,
            error_class=last_class,
            error=f"{type(last_exc).__name__}: {truncate_str_for_log(last_exc)}",
            error_category=error_category(last_exc),
            detail=", ".join(f"{k}={v}" for k, v in meta.items()),
        )

    async def _write(
        self, conn: Connection, op: Operation
    ) -> tuple[Optional[str], Optional[str], int]:
        rows = await conn.execute(op.statement, op.params)
        if rows < 1:
            raise NoRowsAffectedError(f"INSERT into {op.target} affected no rows")

        # Host lookup on the same connection. A failure here does not undo
        # the committed insert.
        host: Optional[str] = None
        try:
            host_rows = await conn.fetch(self.provider.host_query)
            if host_rows and host_rows[0][0] is not None:
                host = str(host_rows[0][0])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_class = self.classifier(e)
            logger.debug("%s | host lookup failed (%s): %s", op.worker_label, error_class.value, e)
            if self.phase_tracker is not None:
                self.phase_tracker.observe_error(error_class, str(e))
        return host, None, rows

    async def _read(
        self, conn: Connection, op: Operation
    ) -> tuple[Optional[str], Optional[str], int]:
        rows = await conn.fetch(op.statement, op.params)
        if not rows:
            raise NoRowsAffectedError("introspection query returned no rows")
        row = rows[0]
        host = str(row[0]) if row[0] is not None else None
        detail = format_read_result(row, self.provider.introspection_columns)
        return host, detail, len(rows)
