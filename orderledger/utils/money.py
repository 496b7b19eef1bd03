"""
Fixed-point money helpers
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round any numeric input to 2 decimal places, half up"""
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1 and not its binary expansion
        value = repr(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e


def split_evenly(total: Decimal, parts: int) -> list[Decimal]:
    """Split total into parts that differ by at most one cent and sum exactly to total"""
    if parts < 1:
        raise ValueError("parts must be at least 1")
    cents = int(to_money(total) / CENT)
    share, remainder = divmod(cents, parts)
    return [(Decimal(share + (1 if i < remainder else 0)) * CENT) for i in range(parts)]
