"""Tests for Kubernetes-style resource quantity parsing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from pipectl.kernel.domain.quantities import (
    check_cpu_shares,
    check_memory_shares,
    parse_cpu_to_millicores,
    parse_memory_to_bytes,
    parse_quantity,
)
from pipectl.kernel.exceptions import ValidationError


class TestParseQuantity:
    @pytest.mark.parametrize(
        ("text", "value"),
        [
            ("1", Decimal(1)),
            ("500m", Decimal("0.5")),
            ("1Ki", Decimal(1024)),
            ("2Mi", Decimal(2 * 1024 * 1024)),
            ("1k", Decimal(1000)),
            ("1e3", Decimal(1000)),
            ("1.5G", Decimal("1.5e9")),
        ],
    )
    def test_valid(self, text: str, value: Decimal) -> None:
        assert parse_quantity(text) == value

    @pytest.mark.parametrize("text", ["", "abc", "1X", "Mi", "1 Gi"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValidationError, match="quantity"):
            parse_quantity(text)

    def test_cpu_rounds_up(self) -> None:
        assert parse_cpu_to_millicores("0.1001") == 101
        assert parse_cpu_to_millicores("2") == 2000

    def test_memory_bytes(self) -> None:
        assert parse_memory_to_bytes("256Mi") == 256 * 1024 * 1024


class TestShareChecks:
    @pytest.mark.parametrize("value", ["100m", "200m", "1", "1.5", "0.3"])
    def test_cpu_ok(self, value: str) -> None:
        assert check_cpu_shares(value) is None

    def test_cpu_not_multiple(self) -> None:
        reason = check_cpu_shares("150m")
        assert reason is not None
        assert "multiple of 100m" in reason

    def test_cpu_below_minimum(self) -> None:
        reason = check_cpu_shares("0m")
        assert reason is not None
        assert "at least 100m" in reason

    def test_cpu_unparseable(self) -> None:
        reason = check_cpu_shares("lots")
        assert reason is not None
        assert "could not parse" in reason

    def test_memory(self) -> None:
        assert check_memory_shares("256Mi") is None
        reason = check_memory_shares("big")
        assert reason is not None
        assert "memory_shares" in reason
