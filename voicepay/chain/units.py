"""Decimal string <-> smallest-unit integer conversion.

Amounts travel through the pipeline as strings and are only turned into integers at the token's
full precision. No floating point is involved anywhere.
"""

from __future__ import annotations

import re

_DECIMAL_RE = re.compile(r"^(?P<int>\d+)(?:\.(?P<frac>\d+))?$")
_GROUPED_RE = re.compile(r"^[1-9]\d{0,2}(?:,\d{3})+(?:\.\d+)?$")


def canonical_amount(amount: str) -> str:
    """Return the amount with ``.`` as the only separator.

    ``"1,000"`` and ``"12,345.5"`` are grouped thousands; any other ``,`` (``"2,25"``) is a
    decimal comma.
    """

    value = (amount or "").strip()
    if _GROUPED_RE.fullmatch(value):
        return value.replace(",", "")
    return value.replace(",", ".")


def decimal_to_units(amount: str, decimals: int) -> int:
    """Convert a human amount such as ``"1.5"`` into smallest units.

    Raises:
        ValueError: If the string is not a non-negative decimal or carries more fractional digits
            than the token supports.
    """

    match = _DECIMAL_RE.fullmatch(canonical_amount(amount))
    if not match:
        raise ValueError(f"invalid decimal amount: {amount!r}")

    frac = (match.group("frac") or "").rstrip("0")
    if len(frac) > decimals:
        raise ValueError(f"amount {amount!r} exceeds {decimals} decimal places")

    return int(match.group("int")) * 10 ** decimals + int(frac.ljust(decimals, "0") or "0")


def units_to_decimal(units: int | str, decimals: int) -> str:
    """Convert smallest units back into a canonical decimal string (no trailing zeros)."""

    value = int(units)
    if value < 0:
        raise ValueError("units must be non-negative")
    if decimals == 0:
        return str(value)

    int_part, frac_part = divmod(value, 10 ** decimals)
    frac = str(frac_part).rjust(decimals, "0").rstrip("0")
    return f"{int_part}.{frac}" if frac else str(int_part)


def is_valid_amount(amount: str, decimals: int) -> bool:
    try:
        decimal_to_units(amount, decimals)
    except ValueError:
        return False
    return True
