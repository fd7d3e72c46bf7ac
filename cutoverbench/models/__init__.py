"""
Data models for CutoverBench.

This package contains:
- Workload configuration (workers, rates, console format)
- Cutover phases and transition records
- Statistics snapshots
"""

from cutoverbench.models.workload_config import (
    ConsoleFormat,
    WorkloadConfig,
)

from cutoverbench.models.phase import (
    Phase,
    PhaseDisplay,
    PhaseTransition,
    PHASE_DISPLAY,
    phase_display_name,
)

from cutoverbench.models.metrics import (
    LatencyPercentiles,
    OperationStats,
    StatsSnapshot,
)

__all__ = [
    # workload_config
    "ConsoleFormat",
    "WorkloadConfig",
    # phase
    "Phase",
    "PhaseDisplay",
    "PhaseTransition",
    "PHASE_DISPLAY",
    "phase_display_name",
    # metrics
    "LatencyPercentiles",
    "OperationStats",
    "StatsSnapshot",
]
