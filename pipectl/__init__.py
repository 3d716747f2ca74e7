"""pipectl - declarative lifecycle management for managed streaming pipelines."""

from importlib.metadata import PackageNotFoundError, version

from pipectl.kernel.domain import OperationResult, PipelineRecord
from pipectl.kernel.reconcile import PipelineLifecycle

try:
    __version__ = version("pipectl")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["OperationResult", "PipelineLifecycle", "PipelineRecord", "__version__"]
