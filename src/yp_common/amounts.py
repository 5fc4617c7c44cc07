"""Integer-cents arithmetic for USDT amounts.

All balances, principals and ledger amounts are int cents. Rates are Decimal
percentages. No float anywhere on the money path.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("1")
_HUNDRED = Decimal("100")


def percent_of(amount_cents: int, rate_percent: Decimal | int | str | None) -> int:
    """Return round(amount * rate / 100) in cents, half-up.

    A missing or unparseable rate yields 0 so callers can treat it as a
    data-integrity problem instead of crashing mid-scan.
    """
    if rate_percent is None:
        return 0
    try:
        rate = Decimal(rate_percent)
    except (InvalidOperation, ValueError):
        return 0
    raw = Decimal(amount_cents) * rate / _HUNDRED
    return int(raw.quantize(_CENT, rounding=ROUND_HALF_UP))


def to_cents(value: Decimal | int | str) -> int:
    """Convert a decimal USDT amount to cents: Decimal('12.345') -> 1235."""
    return int((Decimal(value) * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP))


def cents_to_amount(cents: int) -> str:
    """Plain decimal string used in JSON payloads: 600 -> '6.00', -1200 -> '-12.00'."""
    sign = "-" if cents < 0 else ""
    abs_cents = abs(cents)
    return f"{sign}{abs_cents // 100}.{abs_cents % 100:02d}"


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 650000 -> '6,500.00 USDT'."""
    sign = "-" if cents < 0 else ""
    abs_cents = abs(cents)
    return f"{sign}{abs_cents // 100:,}.{abs_cents % 100:02d} USDT"
