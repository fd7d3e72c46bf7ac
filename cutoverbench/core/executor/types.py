"""
Type definitions and dataclasses for the operation executor.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional


class OperationKind(str, Enum):
    """Kinds of workload operations."""

    WRITE = "write"
    READ = "read"


class ErrorClass(str, Enum):
    """Failure taxonomy used for retry and phase-inference decisions."""

    TRANSIENT_CONNECTION = "transient_connection"
    TOPOLOGY_SIGNAL = "topology_signal"
    TERMINAL = "terminal"

    @property
    def retryable(self) -> bool:
        return self is not ErrorClass.TERMINAL


@dataclass
class Operation:
    """One logical operation built by a worker for a single loop iteration."""

    kind: OperationKind
    target: str
    statement: str
    params: list[Any] = field(default_factory=list)
    worker_label: str = ""
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class OperationResult:
    """Final outcome of an operation after all retry attempts."""

    success: bool
    latency_ms: float
    attempts: int
    error_class: Optional[ErrorClass] = None
    error: Optional[str] = None
    error_category: Optional[str] = None
    observed_host: Optional[str] = None
    detail: Optional[str] = None
    rows_affected: Optional[int] = None


@dataclass
class WorkerState:
    """State owned exclusively by one worker loop."""

    worker_id: int
    kind: OperationKind
    rate: int
    last_host: Optional[str] = None
    loop_started: float = 0.0
    operations: int = 0
    host_switches: int = 0

    @property
    def label(self) -> str:
        prefix = "Worker" if self.kind is OperationKind.WRITE else "Reader"
        return f"{prefix}-{self.worker_id}"

    @property
    def interval_seconds(self) -> float:
        """Target seconds per operation; 0 means unthrottled."""
        if self.rate <= 0:
            return 0.0
        return 1.0 / self.rate
