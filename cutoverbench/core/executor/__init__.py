"""
Workload executor package.

Modules:
- types: Operation, OperationResult, ErrorClass, WorkerState
- helpers: error classification and logging helpers
- operations: OperationExecutor (bounded retry + backoff)
- workers: WorkloadWorker (rate-limited worker loop)
"""

from cutoverbench.core.executor.helpers import classify_error, error_category
from cutoverbench.core.executor.operations import OperationExecutor
from cutoverbench.core.executor.types import (
    ErrorClass,
    Operation,
    OperationKind,
    OperationResult,
    WorkerState,
)
from cutoverbench.core.executor.workers import WorkloadWorker

__all__ = [
    "ErrorClass",
    "Operation",
    "OperationKind",
    "OperationResult",
    "WorkerState",
    "classify_error",
    "error_category",
    "OperationExecutor",
    "WorkloadWorker",
]
