"""ClusterDirectory port: resolves a cluster ID to its cluster API URL."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, runtime_checkable


@runtime_checkable
class ClusterDirectory(Protocol):
    """Port for the control plane's cluster lookups."""

    @abstractmethod
    async def adedicated_cluster_api_url(self, cluster_id: str) -> str | None:
        """Cluster API URL of a dedicated cluster.

        Returns ``None`` when the cluster exists but exposes no cluster API.
        Raises a :class:`~pipectl.kernel.exceptions.PipelineAPIError` when the
        lookup fails.
        """
        ...

    @abstractmethod
    async def aserverless_cluster_api_url(self, cluster_id: str) -> str | None:
        """Cluster API URL of a serverless cluster, same contract as above."""
        ...
