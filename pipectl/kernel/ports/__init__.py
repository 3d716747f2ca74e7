"""Port interfaces consumed by the reconciliation engine."""

from pipectl.kernel.ports.cluster_directory import ClusterDirectory
from pipectl.kernel.ports.pipeline_api import ClientFactory, PipelineAPI
from pipectl.kernel.ports.state_store import PipelineStateStore

__all__ = [
    "ClientFactory",
    "ClusterDirectory",
    "PipelineAPI",
    "PipelineStateStore",
]
