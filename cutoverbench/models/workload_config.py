"""
Workload Configuration Models

Defines the validated workload shape for a run:
- Worker counts and per-worker rates
- Retry/backoff parameters
- Console presentation format
- Phase inference tuning
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ConsoleFormat(str, Enum):
    """Console presentation modes for the periodic report."""

    VERBOSE = "verbose"
    EVENT_DRIVEN = "event_driven"
    DASHBOARD = "dashboard"


class WorkloadConfig(BaseModel):
    """
    Configuration for a workload run.

    Rates are operations per second per worker; 0 disables throttling.
    """

    # Workers
    write_workers: int = Field(10, ge=1, description="Write workers (minimum 1)")
    write_rate: int = Field(100, ge=0, description="Writes/sec per worker (0=unthrottled)")
    read_workers: int = Field(0, ge=0, description="Read workers")
    read_rate: int = Field(100, ge=0, description="Reads/sec per worker (0=unthrottled)")

    # Connection pool
    connection_pool_size: int = Field(100, ge=1, description="Max pooled connections")

    # Reporting
    log_interval_seconds: float = Field(10.0, gt=0, description="Report interval (seconds)")
    console_format: ConsoleFormat = Field(
        ConsoleFormat.DASHBOARD, description="Console output format"
    )

    # Cutover
    deployment_id: Optional[str] = Field(
        None, description="Blue/green deployment identifier, if known"
    )
    preparation_grace_seconds: Optional[float] = Field(
        30.0,
        gt=0,
        description="Seconds in CREATED before assuming PREPARATION (None disables)",
    )
    allow_phase_regression: bool = Field(
        False, description="Allow phase transitions that move backwards"
    )

    # Retry
    max_retries: int = Field(5, ge=1, description="Max attempts per operation")
    retry_base_delay_ms: float = Field(500.0, ge=0, description="Backoff base delay (ms)")

    # Write targets
    table_count: int = Field(12000, ge=1, description="Number of test_NNNN tables")
    table_prefix: str = Field("test_", min_length=1, description="Write table name prefix")

    # Shutdown
    shutdown_grace_seconds: float = Field(
        30.0, ge=0, description="Grace period for in-flight operations at shutdown"
    )

    @field_validator("deployment_id")
    @classmethod
    def blank_deployment_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        if not v.replace("_", "").isalnum():
            raise ValueError("table_prefix must be alphanumeric/underscore")
        return v

    @property
    def total_workers(self) -> int:
        return self.write_workers + self.read_workers

    def table_name(self, table_id: int) -> str:
        return f"{self.table_prefix}{table_id:04d}"
