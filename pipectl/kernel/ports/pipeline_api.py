"""PipelineAPI port: the remote pipeline service.

Adapters
--------
- ``HttpPipelineAPI``: REST client over :mod:`httpx`.
- Tests use an in-memory fake that scripts state transitions.

Every method raises a :class:`~pipectl.kernel.exceptions.PipelineAPIError`
subclass on failure so callers can classify not-found / unreachable /
permission-denied without knowing the transport.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pipectl.kernel.domain.pipeline_record import PipelineRequest, PipelineSnapshot


@runtime_checkable
class PipelineAPI(Protocol):
    """Port for the remote pipeline service of one cluster."""

    @abstractmethod
    async def acreate_pipeline(self, request: PipelineRequest) -> PipelineSnapshot:
        """Create a pipeline and return its initial snapshot.

        The remote side may start the pipeline on its own; callers must not
        assume the returned state.
        """
        ...

    @abstractmethod
    async def aget_pipeline(self, pipeline_id: str) -> PipelineSnapshot:
        """Fetch the current snapshot of a pipeline.

        Raises
        ------
        PipelineNotFoundError
            If the pipeline does not exist
        ClusterUnreachableError
            If the cluster API cannot be reached
        """
        ...

    @abstractmethod
    async def aupdate_pipeline(self, pipeline_id: str, request: PipelineRequest) -> PipelineSnapshot:
        """Replace the definition of a (stopped) pipeline."""
        ...

    @abstractmethod
    async def adelete_pipeline(self, pipeline_id: str) -> None:
        """Delete a pipeline.

        Raises
        ------
        PipelineNotFoundError
            If the pipeline is already gone
        """
        ...

    @abstractmethod
    async def astart_pipeline(self, pipeline_id: str) -> None:
        """Ask the remote side to start a pipeline (returns before it runs)."""
        ...

    @abstractmethod
    async def astop_pipeline(self, pipeline_id: str) -> None:
        """Ask the remote side to stop a pipeline (returns before it stops)."""
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying connection."""
        ...


class ClientFactory(Protocol):
    """Builds a :class:`PipelineAPI` for one cluster API URL.

    Raises :class:`~pipectl.kernel.exceptions.ClientCreationError` or a
    :class:`~pipectl.kernel.exceptions.PipelineAPIError` when the client
    cannot be built. The caller owns the returned client and must
    ``aclose`` it.
    """

    def __call__(self, cluster_api_url: str, auth_token: str | None) -> PipelineAPI: ...
