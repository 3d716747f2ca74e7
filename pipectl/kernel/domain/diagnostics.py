"""Diagnostics returned by every lifecycle operation.

Operations never raise for remote failures; they return an
:class:`OperationResult` whose diagnostics say whether the operation failed
(``error``), partially succeeded (``warning``), or did nothing noteworthy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pipectl.kernel.domain.pipeline_record import PipelineRecord


class Severity(StrEnum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A single error or warning."""

    severity: Severity
    summary: str
    detail: str = ""


@dataclass(slots=True)
class Diagnostics:
    """Ordered collection of diagnostics for one operation."""

    items: list[Diagnostic] = field(default_factory=list)

    def add_error(self, summary: str, detail: str = "") -> None:
        self.items.append(Diagnostic(Severity.ERROR, summary, detail))

    def add_warning(self, summary: str, detail: str = "") -> None:
        self.items.append(Diagnostic(Severity.WARNING, summary, detail))

    def extend(self, other: Diagnostics) -> None:
        self.items.extend(other.items)

    @property
    def has_error(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.items)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.items if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.items if d.severity is Severity.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(slots=True)
class OperationResult:
    """Outcome of a lifecycle operation.

    Attributes
    ----------
    record : PipelineRecord | None
        The record to persist. ``None`` when nothing should be written
        (hard failure, completed delete, or removal).
    diagnostics : Diagnostics
        Errors and warnings gathered during the operation.
    removed : bool
        ``True`` when the pipeline must be dropped from tracked state.
    """

    record: PipelineRecord | None = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    removed: bool = False

    @property
    def ok(self) -> bool:
        """Whether the operation finished without a hard error."""
        return not self.diagnostics.has_error
