"""
Reporter

Periodically pulls a statistics snapshot plus the current phase and host,
and hands them to the configured console formatter. Phase and host changes
are rendered as they happen.
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

from cutoverbench.connectors.base import ConnectionProvider
from cutoverbench.core.console_formats import ConsoleFormatter, ReportContext
from cutoverbench.core.executor.helpers import sleep_unless_set
from cutoverbench.core.host_tracker import HostTracker
from cutoverbench.core.metrics_collector import StatisticsAggregator
from cutoverbench.core.phase_tracker import PhaseTracker
from cutoverbench.models import PhaseTransition

logger = logging.getLogger(__name__)


class Reporter:
    """Periodic report task."""

    def __init__(
        self,
        aggregator: StatisticsAggregator,
        phase_tracker: PhaseTracker,
        host_tracker: HostTracker,
        formatter: ConsoleFormatter,
        *,
        interval_seconds: float = 10.0,
        provider: Optional[ConnectionProvider] = None,
        stream: Optional[TextIO] = None,
        host_refresh_timeout: float = 5.0,
    ):
        """
        Args:
            aggregator: Source of statistics snapshots
            phase_tracker: Source of the current phase
            host_tracker: Source of the current writer host
            formatter: Console presentation strategy
            interval_seconds: Seconds between reports
            provider: Optional; supplies pool occupancy for the dashboard
            stream: Console stream for non-logging formatters (default stdout)
            host_refresh_timeout: Upper bound on the per-tick host query
        """
        self.aggregator = aggregator
        self.phase_tracker = phase_tracker
        self.host_tracker = host_tracker
        self.formatter = formatter
        self.interval_seconds = interval_seconds
        self.provider = provider
        self.stream = stream
        self.host_refresh_timeout = host_refresh_timeout
        self.reports_emitted = 0

        phase_tracker.add_listener(self._on_phase_change)
        host_tracker.add_listener(self._on_host_change)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Report every interval until `stop_event` is set."""
        while not await sleep_unless_set(stop_event, self.interval_seconds):
            try:
                await self.report()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Periodic report failed: %s", e)

    async def report(self, final: bool = False) -> list[str]:
        """Build and emit one report; returns the rendered lines."""
        self.phase_tracker.evaluate()

        if self.provider is not None:
            try:
                await asyncio.wait_for(
                    self.host_tracker.refresh(), timeout=self.host_refresh_timeout
                )
            except asyncio.TimeoutError:
                logger.debug("Host refresh timed out after %.1fs", self.host_refresh_timeout)

        pool_stats = None
        if self.provider is not None:
            try:
                pool_stats = await self.provider.get_pool_stats()
            except Exception as e:
                logger.debug("Pool stats unavailable: %s", e)

        ctx = ReportContext(
            snapshot=self.aggregator.snapshot(),
            phase=self.phase_tracker.phase,
            current_host=self.host_tracker.current_host,
            deployment_id=self.phase_tracker.deployment_id,
            pool_stats=pool_stats,
            final=final,
            now=datetime.now(),
        )
        lines = self.formatter.render_report(ctx)
        self._emit(lines)
        self.reports_emitted += 1
        return lines

    def _on_phase_change(self, transition: PhaseTransition) -> None:
        self._emit(self.formatter.render_phase_change(transition))

    def _on_host_change(self, previous: Optional[str], current: str) -> None:
        self._emit(self.formatter.render_host_change(previous, current))

    def _emit(self, lines: list[str]) -> None:
        if not lines:
            return
        if self.formatter.uses_logger:
            for line in lines:
                logger.info(line)
            return
        stream = self.stream or sys.stdout
        stream.write("\n".join(lines) + "\n")
        stream.flush()
