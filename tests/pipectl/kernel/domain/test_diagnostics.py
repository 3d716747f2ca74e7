"""Tests for diagnostics and operation results."""

from __future__ import annotations

from pipectl.kernel.domain.diagnostics import Diagnostics, OperationResult, Severity


def test_empty_diagnostics() -> None:
    diags = Diagnostics()
    assert not diags.has_error
    assert len(diags) == 0
    assert OperationResult().ok


def test_warnings_do_not_fail_operation() -> None:
    diags = Diagnostics()
    diags.add_warning("pipeline failed to reach desired state", "timeout")
    result = OperationResult(diagnostics=diags)
    assert result.ok
    assert [d.severity for d in diags] == [Severity.WARNING]


def test_errors_and_ordering() -> None:
    diags = Diagnostics()
    diags.add_warning("first")
    diags.add_error("second", "detail")
    other = Diagnostics()
    other.add_warning("third")
    diags.extend(other)

    assert diags.has_error
    assert [d.summary for d in diags] == ["first", "second", "third"]
    assert [d.summary for d in diags.errors] == ["second"]
    assert [d.summary for d in diags.warnings] == ["first", "third"]
    assert not OperationResult(diagnostics=diags).ok
