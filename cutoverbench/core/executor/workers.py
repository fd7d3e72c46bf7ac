"""
Workload worker loops.

Each worker is one asyncio task that builds an operation, runs it through
the executor, reports the outcome and sleeps to hold its per-worker rate.
A worker never has two operations in flight.
"""

import asyncio
import logging
import random
import time
from typing import TYPE_CHECKING, Callable, Optional

from cutoverbench.core.executor.helpers import sleep_unless_set, truncate_str_for_log
from cutoverbench.core.executor.operations import OperationExecutor
from cutoverbench.core.executor.types import (
    ErrorClass,
    Operation,
    OperationKind,
    OperationResult,
    WorkerState,
)

if TYPE_CHECKING:
    from cutoverbench.core.host_tracker import HostTracker
    from cutoverbench.core.metrics_collector import StatisticsAggregator

logger = logging.getLogger(__name__)
operations_logger = logging.getLogger("cutoverbench.operations")


class WorkloadWorker:
    """One independent, rate-limited read or write loop."""

    def __init__(
        self,
        worker_id: int,
        kind: OperationKind,
        rate: int,
        executor: OperationExecutor,
        aggregator: "StatisticsAggregator",
        *,
        host_tracker: Optional["HostTracker"] = None,
        table_count: int = 12000,
        table_prefix: str = "test_",
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = WorkerState(worker_id=worker_id, kind=kind, rate=int(rate))
        self.executor = executor
        self.aggregator = aggregator
        self.host_tracker = host_tracker
        self.table_count = max(1, int(table_count))
        self.table_prefix = table_prefix
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def label(self) -> str:
        return self.state.label

    def build_operation(self) -> Operation:
        """Build the next operation for this worker's kind."""
        provider = self.executor.provider
        if self.state.kind is OperationKind.WRITE:
            table_id = self._rng.randint(1, self.table_count)
            table = f"{self.table_prefix}{table_id:04d}"
            now_ms = int(time.time() * 1000)
            params = [
                f"data-{now_ms}",
                self._rng.randint(0, 999),
                self.label.lower(),
                now_ms,
                "test-data",
            ]
            return Operation(
                kind=OperationKind.WRITE,
                target=table,
                statement=provider.insert_statement(table),
                params=params,
                worker_label=self.label,
            )
        return Operation(
            kind=OperationKind.READ,
            target="introspection",
            statement=provider.introspection_query,
            worker_label=self.label,
        )

    async def run_once(self) -> OperationResult:
        """Build, execute and report one operation."""
        op = self.build_operation()
        try:
            result = await self.executor.execute(op)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The executor absorbs driver errors; anything reaching here is a bug.
            logger.exception("%s | unexpected error executing operation", self.label)
            result = OperationResult(
                success=False,
                latency_ms=0.0,
                attempts=1,
                error_class=ErrorClass.TERMINAL,
                error=f"{type(e).__name__}: {truncate_str_for_log(e)}",
                error_category=type(e).__name__,
            )

        self.state.operations += 1
        self.aggregator.record(self.state.kind, result)
        self._track_host(result)
        self._log_result(op, result)
        return result

    async def run(self, stop_event: asyncio.Event) -> None:
        """Loop until `stop_event` is set."""
        interval = self.state.interval_seconds
        logger.debug("%s started (rate=%s/s)", self.label, self.state.rate or "unthrottled")
        while not stop_event.is_set():
            self.state.loop_started = self._clock()
            await self.run_once()

            remaining = interval - (self._clock() - self.state.loop_started)
            if remaining <= 0:
                # Unthrottled or behind schedule: still yield to other tasks.
                await asyncio.sleep(0)
                continue
            if await sleep_unless_set(stop_event, remaining):
                break
        logger.debug("%s stopped after %d operations", self.label, self.state.operations)

    def _track_host(self, result: OperationResult) -> None:
        host = result.observed_host
        if not result.success or not host:
            return

        previous = self.state.last_host
        if previous is not None and previous != host:
            self.state.host_switches += 1
            logger.info("%s | Switched to new host: %s (from: %s)", self.label, host, previous)
        self.state.last_host = host

        # Reads may land on any reader; only writes identify the writer.
        if self.state.kind is OperationKind.WRITE and self.host_tracker is not None:
            self.host_tracker.observe(host)

    def _log_result(self, op: Operation, result: OperationResult) -> None:
        if result.success:
            if op.kind is OperationKind.WRITE:
                operations_logger.info(
                    "%s | %s | host=%s | %.2fms | attempts=%d",
                    self.label,
                    op.target,
                    result.observed_host or "unknown",
                    result.latency_ms,
                    result.attempts,
                )
            else:
                operations_logger.info(
                    "%s | READ | %s | %.2fms | attempts=%d",
                    self.label,
                    result.detail or result.observed_host or "unknown",
                    result.latency_ms,
                    result.attempts,
                )
            return

        operations_logger.error(
            "%s | %s | FAILED after %d attempt(s) | %.2fms | class=%s category=%s | %s%s",
            self.label,
            op.target,
            result.attempts,
            result.latency_ms,
            result.error_class.value if result.error_class else "unknown",
            result.error_category or "-",
            result.error or "",
            f" ({result.detail})" if result.detail else "",
        )
