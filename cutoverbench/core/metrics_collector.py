"""
Statistics Aggregator

Cumulative per-kind counters, per-host distribution, error breakdowns and
rolling-window latency percentiles.

All workers run on one event loop and `record()` never awaits, so each
record is applied in full before any other task runs. Snapshots therefore
always satisfy count == success + error per kind without a lock.
"""

import logging
from collections import Counter, deque
from datetime import UTC, datetime
from typing import List, Optional

from cutoverbench.core.executor.types import OperationKind, OperationResult
from cutoverbench.models import LatencyPercentiles, OperationStats, StatsSnapshot

logger = logging.getLogger(__name__)


class _KindCounters:
    """Independent counters for one operation kind."""

    __slots__ = (
        "count",
        "success",
        "failed",
        "latency_sum",
        "latency_min",
        "latency_max",
        "latencies",
        "hosts",
        "error_classes",
        "error_categories",
    )

    def __init__(self, window_size: int):
        self.count = 0
        self.success = 0
        self.failed = 0
        self.latency_sum = 0.0
        self.latency_min: Optional[float] = None
        self.latency_max: Optional[float] = None
        self.latencies: deque = deque(maxlen=window_size)
        self.hosts: Counter = Counter()
        self.error_classes: Counter = Counter()
        self.error_categories: Counter = Counter()


class StatisticsAggregator:
    """
    Collects operation outcomes from every worker.

    Features:
    - Totals, successes and failures per operation kind
    - Latency sum, min/max and rolling-window percentiles
    - Per-host distribution of successful operations
    - Failure breakdown by error class and error category
    """

    def __init__(self, window_size: int = 10000):
        """
        Args:
            window_size: Max successful latencies kept per kind for percentiles
        """
        self.window_size = window_size
        self._counters = {kind: _KindCounters(window_size) for kind in OperationKind}
        self.start_time: Optional[datetime] = None

    def start(self) -> None:
        """Start the collection clock."""
        self.start_time = datetime.now(UTC)
        logger.info("Statistics collection started")

    def record(self, kind: OperationKind, result: OperationResult) -> None:
        """
        Record one final operation outcome.

        Must not await: the whole update happens in one scheduling slice.
        """
        c = self._counters[kind]
        c.count += 1
        if result.success:
            c.success += 1
            latency = float(result.latency_ms)
            c.latency_sum += latency
            c.latencies.append(latency)
            if c.latency_min is None or latency < c.latency_min:
                c.latency_min = latency
            if c.latency_max is None or latency > c.latency_max:
                c.latency_max = latency
            if result.observed_host:
                c.hosts[result.observed_host] += 1
        else:
            c.failed += 1
            if result.error_class is not None:
                c.error_classes[result.error_class.value] += 1
            if result.error_category:
                c.error_categories[result.error_category] += 1

    def snapshot(self) -> StatsSnapshot:
        """
        Point-in-time view of all counters.

        Returns:
            StatsSnapshot with percentiles computed over the rolling window
        """
        now = datetime.now(UTC)
        elapsed = (now - self.start_time).total_seconds() if self.start_time else 0.0
        return StatsSnapshot(
            timestamp=now,
            elapsed_seconds=elapsed,
            writes=self._kind_stats(self._counters[OperationKind.WRITE]),
            reads=self._kind_stats(self._counters[OperationKind.READ]),
        )

    def reset(self) -> None:
        """Reset all counters."""
        self._counters = {kind: _KindCounters(self.window_size) for kind in OperationKind}
        self.start_time = datetime.now(UTC)
        logger.info("Statistics reset")

    def _kind_stats(self, c: _KindCounters) -> OperationStats:
        percentiles = self._calculate_percentiles(list(c.latencies))
        if c.latency_min is not None:
            percentiles.min = c.latency_min
        if c.latency_max is not None:
            percentiles.max = c.latency_max
        return OperationStats(
            count=c.count,
            success_count=c.success,
            error_count=c.failed,
            total_latency_ms=c.latency_sum,
            latency=percentiles,
            host_counts=dict(c.hosts),
            error_classes=dict(c.error_classes),
            error_categories=dict(c.error_categories),
        )

    @staticmethod
    def _calculate_percentiles(latencies: List[float]) -> LatencyPercentiles:
        """
        Calculate latency percentiles from a list of latency values.

        Args:
            latencies: List of latency values in milliseconds

        Returns:
            LatencyPercentiles with calculated values
        """
        if not latencies:
            return LatencyPercentiles()

        sorted_latencies = sorted(latencies)
        n = len(sorted_latencies)

        def percentile(p: float) -> float:
            """Linear interpolation between closest ranks (p in 0.0-1.0)."""
            k = (n - 1) * p
            f = int(k)
            frac = k - f
            if f + 1 < n:
                return sorted_latencies[f] * (1 - frac) + sorted_latencies[f + 1] * frac
            return sorted_latencies[f]

        return LatencyPercentiles(
            p50=percentile(0.50),
            p95=percentile(0.95),
            p99=percentile(0.99),
            min=sorted_latencies[0],
            max=sorted_latencies[-1],
            avg=sum(sorted_latencies) / n,
        )
