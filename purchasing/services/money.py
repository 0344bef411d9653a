from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def D(v) -> Decimal:
    if v is None:
        return Decimal("0")
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Not a decimal amount: {v!r}")


def money2(v) -> Decimal:
    return D(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
