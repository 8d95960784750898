"""Decimal helpers for currency amounts."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def normalize_amount(value: Decimal | float | int | str | None) -> Decimal:
    """Quantize ``value`` to cents, treating ``None`` as zero."""

    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
