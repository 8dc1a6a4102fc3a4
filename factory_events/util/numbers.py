from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_CENTS = Decimal("0.01")


def ratio_half_up(numerator: int, denominator: int) -> float:
    """numerator / denominator to 2 decimals, half-up, computed exactly; 0 if denominator <= 0."""
    if denominator <= 0:
        return 0.0
    q = Decimal(numerator) / Decimal(denominator)
    return float(q.quantize(_CENTS, rounding=ROUND_HALF_UP))
