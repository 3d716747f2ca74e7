"""Kubernetes-style resource quantities (``500m``, ``256Mi``, ``1.5G``)."""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation

from pipectl.kernel.exceptions import ValidationError

_QUANTITY = re.compile(
    r"^(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+))"
    r"(?P<suffix>Ki|Mi|Gi|Ti|Pi|Ei|n|u|m|k|M|G|T|P|E|[eE][+-]?\d+)?$"
)

_BINARY = {
    "Ki": Decimal(2) ** 10,
    "Mi": Decimal(2) ** 20,
    "Gi": Decimal(2) ** 30,
    "Ti": Decimal(2) ** 40,
    "Pi": Decimal(2) ** 50,
    "Ei": Decimal(2) ** 60,
}
_DECIMAL = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

MIN_CPU_MILLICORES = 100
CPU_STEP_MILLICORES = 100


def parse_quantity(value: str) -> Decimal:
    """Parse a quantity string into its exact numeric value.

    Raises
    ------
    ValidationError
        If the string is not a valid quantity
    """
    match = _QUANTITY.match(value.strip())
    if match is None:
        raise ValidationError("quantity", "unable to parse quantity", value)
    try:
        number = Decimal(match.group("number"))
    except InvalidOperation as e:
        raise ValidationError("quantity", "unable to parse quantity", value) from e

    suffix = match.group("suffix")
    if not suffix:
        return number
    if suffix in _BINARY:
        return number * _BINARY[suffix]
    if suffix in _DECIMAL:
        return number * _DECIMAL[suffix]
    return number * (Decimal(10) ** int(suffix[1:]))


def parse_cpu_to_millicores(value: str) -> int:
    """Parse a CPU quantity into millicores, rounding up.

    >>> parse_cpu_to_millicores("500m")
    500
    >>> parse_cpu_to_millicores("1.5")
    1500
    """
    return math.ceil(parse_quantity(value) * 1000)


def parse_memory_to_bytes(value: str) -> int:
    """Parse a memory quantity into bytes, rounding up.

    >>> parse_memory_to_bytes("1Ki")
    1024
    """
    return math.ceil(parse_quantity(value))


def check_cpu_shares(value: str) -> str | None:
    """Return a reason when ``value`` is not an acceptable cpu share, else ``None``."""
    try:
        millicores = parse_cpu_to_millicores(value)
    except ValidationError:
        return (
            f"could not parse cpu_shares value {value!r}. "
            "Use Kubernetes quantity format (e.g., '100m', '500m', '1')."
        )
    if millicores % CPU_STEP_MILLICORES != 0:
        return (
            f"cpu_shares must be a multiple of 100m, got {value!r} ({millicores} millicores). "
            "Valid examples: '100m', '200m', '500m', '1', '2'."
        )
    if millicores < MIN_CPU_MILLICORES:
        return f"cpu_shares must be at least 100m (1 compute unit), got {value!r} ({millicores}m)."
    return None


def check_memory_shares(value: str) -> str | None:
    """Return a reason when ``value`` is not a parseable memory quantity, else ``None``."""
    try:
        parse_memory_to_bytes(value)
    except ValidationError:
        return (
            f"could not parse memory_shares value {value!r}. "
            "Use Kubernetes quantity format (e.g., '256Mi', '1Gi', '512M', '2G')."
        )
    return None
