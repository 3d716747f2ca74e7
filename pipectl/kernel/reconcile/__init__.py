"""Reconciliation engine: merge, convergence and lifecycle orchestration."""

from pipectl.kernel.reconcile.convergence import (
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    BackoffPolicy,
    ConvergenceDriver,
    ConvergenceResult,
    WaitOutcome,
    WaitStatus,
)
from pipectl.kernel.reconcile.lifecycle import PipelineLifecycle
from pipectl.kernel.reconcile.merge import changed_fields, merge
from pipectl.kernel.reconcile.validation import validate_plan

__all__ = [
    "DEFAULT_OPERATION_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "BackoffPolicy",
    "ConvergenceDriver",
    "ConvergenceResult",
    "PipelineLifecycle",
    "WaitOutcome",
    "WaitStatus",
    "changed_fields",
    "merge",
    "validate_plan",
]
