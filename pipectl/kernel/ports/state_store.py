"""PipelineStateStore port: persisted pipeline records keyed by resource name."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pipectl.kernel.domain.pipeline_record import PipelineRecord


@runtime_checkable
class PipelineStateStore(Protocol):
    """Port for storing tracked pipeline records.

    Records are always read whole and written whole.
    """

    @abstractmethod
    async def aload(self, name: str) -> PipelineRecord | None:
        """Load the record tracked under ``name`` (``None`` if untracked)."""
        ...

    @abstractmethod
    async def asave(self, name: str, record: PipelineRecord) -> None:
        """Write the record tracked under ``name``."""
        ...

    @abstractmethod
    async def aremove(self, name: str) -> bool:
        """Stop tracking ``name``. Returns whether anything was removed."""
        ...

    @abstractmethod
    async def alist(self) -> list[str]:
        """Names of all tracked pipelines, sorted."""
        ...
