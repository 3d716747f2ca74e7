"""Domain models for pipectl."""

from pipectl.kernel.domain.diagnostics import (
    Diagnostic,
    Diagnostics,
    OperationResult,
    Severity,
)
from pipectl.kernel.domain.pipeline_record import (
    ContingentFields,
    PipelineRecord,
    PipelineRequest,
    PipelineSnapshot,
    Resources,
    ServiceAccount,
    Timeouts,
    parse_duration,
)
from pipectl.kernel.domain.pipeline_state import (
    DesiredRunState,
    LifecycleState,
    decode,
    equivalent,
    normalize,
)

__all__ = [
    "ContingentFields",
    "DesiredRunState",
    "Diagnostic",
    "Diagnostics",
    "LifecycleState",
    "OperationResult",
    "PipelineRecord",
    "PipelineRequest",
    "PipelineSnapshot",
    "Resources",
    "ServiceAccount",
    "Severity",
    "Timeouts",
    "decode",
    "equivalent",
    "normalize",
    "parse_duration",
]
