"""
Workload Simulator

Wires the workload engine together for one run: connectivity check, phase
and host tracking, worker pool, periodic reporter, and an orderly shutdown
that ends with a final report.
"""

import asyncio
import logging
from typing import Optional, TextIO

from cutoverbench.connectors.base import ConnectionProvider
from cutoverbench.core.console_formats import create_formatter
from cutoverbench.core.executor import OperationExecutor, OperationKind, WorkloadWorker
from cutoverbench.core.host_tracker import HostTracker
from cutoverbench.core.metrics_collector import StatisticsAggregator
from cutoverbench.core.phase_tracker import PhaseTracker
from cutoverbench.core.reporter import Reporter
from cutoverbench.core.worker_pool import WorkerPool
from cutoverbench.exceptions import ConnectivityError
from cutoverbench.models import StatsSnapshot, WorkloadConfig

logger = logging.getLogger(__name__)


class WorkloadSimulator:
    """
    One workload run against one cluster endpoint.

    Usage:
        sim = WorkloadSimulator(config, provider)
        await sim.start()
        ...
        sim.request_stop()
        await sim.run()
    """

    def __init__(
        self,
        config: WorkloadConfig,
        provider: ConnectionProvider,
        *,
        stream: Optional[TextIO] = None,
    ):
        self.config = config
        self.provider = provider
        self.stop_event = asyncio.Event()

        self.phase_tracker = PhaseTracker(
            preparation_grace_seconds=config.preparation_grace_seconds,
            allow_regression=config.allow_phase_regression,
        )
        self.host_tracker = HostTracker(provider, phase_tracker=self.phase_tracker)
        self.aggregator = StatisticsAggregator()
        self.executor = OperationExecutor(
            provider,
            phase_tracker=self.phase_tracker,
            max_retries=config.max_retries,
            retry_base_delay_ms=config.retry_base_delay_ms,
            stop_event=self.stop_event,
        )
        self.pool = WorkerPool(stop_event=self.stop_event)
        self.reporter = Reporter(
            self.aggregator,
            self.phase_tracker,
            self.host_tracker,
            create_formatter(config),
            interval_seconds=config.log_interval_seconds,
            provider=provider,
            stream=stream,
        )
        self.workers: list[WorkloadWorker] = []
        self._reporter_task: Optional[asyncio.Task] = None
        self._started = False
        self._stopped = False

    def _log_banner(self) -> None:
        cfg = self.config
        logger.info("=" * 60)
        logger.info("Starting workload simulator")
        logger.info("Target: %s", self.provider.describe())
        logger.info(
            "Write workers: %d @ %s/sec | Read workers: %d @ %s/sec",
            cfg.write_workers,
            cfg.write_rate or "unthrottled",
            cfg.read_workers,
            cfg.read_rate or "unthrottled",
        )
        logger.info(
            "Pool size: %d | Report interval: %gs | Console format: %s",
            cfg.connection_pool_size,
            cfg.log_interval_seconds,
            cfg.console_format.value,
        )
        logger.info(
            "Max retries: %d | Backoff base: %gms | Deployment: %s",
            cfg.max_retries,
            cfg.retry_base_delay_ms,
            cfg.deployment_id or "none",
        )
        logger.info("=" * 60)

    async def start(self) -> None:
        """
        Verify connectivity and launch all workers and the reporter.

        Raises:
            ConnectivityError: if the startup connection test fails
        """
        if self._started:
            return
        self._log_banner()

        try:
            await self.provider.initialize()
        except Exception as e:
            raise ConnectivityError(f"Could not create connection pool: {e}") from e
        _, host = await self.provider.test_connection()

        self.host_tracker.observe(host)
        self.phase_tracker.register_deployment(self.config.deployment_id)
        self.aggregator.start()

        for i in range(1, self.config.write_workers + 1):
            self._spawn_worker(i, OperationKind.WRITE, self.config.write_rate)
        for i in range(1, self.config.read_workers + 1):
            self._spawn_worker(i, OperationKind.READ, self.config.read_rate)

        self._reporter_task = asyncio.create_task(
            self.reporter.run(self.stop_event), name="reporter"
        )
        self._started = True
        logger.info(
            "Started %d write worker(s) and %d read worker(s)",
            self.config.write_workers,
            self.config.read_workers,
        )

    def _spawn_worker(self, worker_id: int, kind: OperationKind, rate: int) -> None:
        worker = WorkloadWorker(
            worker_id,
            kind,
            rate,
            self.executor,
            self.aggregator,
            host_tracker=self.host_tracker,
            table_count=self.config.table_count,
            table_prefix=self.config.table_prefix,
        )
        self.workers.append(worker)
        self.pool.spawn(worker.label, worker.run)

    def request_stop(self) -> None:
        """Signal shutdown; safe to call more than once."""
        if not self.stop_event.is_set():
            logger.info("Shutdown requested")
        self.stop_event.set()

    async def run(self) -> StatsSnapshot:
        """Start if needed, wait for the stop signal, then shut down."""
        await self.start()
        await self.stop_event.wait()
        return await self.shutdown()

    async def shutdown(self) -> StatsSnapshot:
        """
        Stop workers within the grace period, emit the final report and
        close the pool.

        Returns:
            Final statistics snapshot
        """
        if self._stopped:
            return self.aggregator.snapshot()
        self._stopped = True
        logger.info("Shutting down workload simulator...")
        self.stop_event.set()

        abandoned = await self.pool.stop_all(self.config.shutdown_grace_seconds)
        if abandoned:
            logger.warning("%d worker(s) abandoned after grace period", abandoned)

        if self._reporter_task is not None:
            try:
                await asyncio.wait_for(self._reporter_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Reporter did not stop in time")
            self._reporter_task = None

        try:
            await self.reporter.report(final=True)
        except Exception as e:
            logger.error("Final report failed: %s", e)

        try:
            await self.provider.close()
        except Exception as e:
            logger.warning("Error closing connection pool: %s", e)

        logger.info("Workload simulator stopped")
        return self.aggregator.snapshot()
