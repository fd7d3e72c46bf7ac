"""
Metrics Models

Defines Pydantic models for point-in-time workload statistics.
"""

from typing import Dict
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class LatencyPercentiles(BaseModel):
    """Latency percentile metrics (in milliseconds)."""

    p50: float = Field(0.0, description="50th percentile (median)")
    p95: float = Field(0.0, description="95th percentile")
    p99: float = Field(0.0, description="99th percentile")
    min: float = Field(0.0, description="Minimum latency")
    max: float = Field(0.0, description="Maximum latency")
    avg: float = Field(0.0, description="Average latency")


class OperationStats(BaseModel):
    """Cumulative statistics for one operation kind."""

    count: int = Field(0, description="Number of operations")
    success_count: int = Field(0, description="Successful operations")
    error_count: int = Field(0, description="Failed operations")
    total_latency_ms: float = Field(0.0, description="Sum of successful latencies (ms)")
    latency: LatencyPercentiles = Field(
        default_factory=LatencyPercentiles, description="Rolling-window percentiles"
    )
    host_counts: Dict[str, int] = Field(
        default_factory=dict, description="Successful operations per serving host"
    )
    error_classes: Dict[str, int] = Field(
        default_factory=dict, description="Failures per error class"
    )
    error_categories: Dict[str, int] = Field(
        default_factory=dict, description="Failures per error category"
    )

    @property
    def success_rate(self) -> float:
        """Calculate success rate (0.0-1.0)."""
        if self.count == 0:
            return 0.0
        return self.success_count / self.count

    @property
    def error_rate(self) -> float:
        """Calculate error rate (0.0-1.0)."""
        if self.count == 0:
            return 0.0
        return self.error_count / self.count

    @property
    def avg_latency_ms(self) -> float:
        """Calculate average latency over successful operations."""
        if self.success_count == 0:
            return 0.0
        return self.total_latency_ms / self.success_count


class StatsSnapshot(BaseModel):
    """
    Point-in-time view of the statistics aggregator.

    Each kind's counters are captured together, so count == success + error
    holds per kind in every snapshot.
    """

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Snapshot timestamp (UTC)"
    )
    elapsed_seconds: float = Field(0.0, description="Seconds since collection started")
    writes: OperationStats = Field(default_factory=OperationStats)
    reads: OperationStats = Field(default_factory=OperationStats)

    @property
    def total_operations(self) -> int:
        return self.writes.count + self.reads.count

    @property
    def successful_operations(self) -> int:
        return self.writes.success_count + self.reads.success_count

    @property
    def failed_operations(self) -> int:
        return self.writes.error_count + self.reads.error_count

    @property
    def success_rate(self) -> float:
        if self.total_operations == 0:
            return 0.0
        return self.successful_operations / self.total_operations

    @property
    def error_rate(self) -> float:
        if self.total_operations == 0:
            return 0.0
        return self.failed_operations / self.total_operations

    def error_classes(self) -> Dict[str, int]:
        """Failures per error class across both kinds."""
        merged: Dict[str, int] = dict(self.writes.error_classes)
        for key, value in self.reads.error_classes.items():
            merged[key] = merged.get(key, 0) + value
        return merged

    def error_categories(self) -> Dict[str, int]:
        merged: Dict[str, int] = dict(self.writes.error_categories)
        for key, value in self.reads.error_categories.items():
            merged[key] = merged.get(key, 0) + value
        return merged
