"""Pure accrual arithmetic: amounts per period and the next due instant.

No I/O here; the engine feeds in the scanned Position and `now`.
"""

from datetime import datetime, timedelta

from src.yp_common.amounts import percent_of
from src.yp_common.datetime_utils import ensure_utc
from src.yp_common.errors import AccrualDataIntegrityError
from src.yp_investment.domain.models import Position


def period_amount(position: Position) -> int:
    """Earning credited for one period of a periodic position, in cents.

    Raises AccrualDataIntegrityError when the rate yields nothing to credit
    (zero, negative or missing rate, or a principal too small to earn a cent).
    """
    amount = percent_of(position.principal, position.rate)
    if amount <= 0:
        raise AccrualDataIntegrityError(
            position.id, f"period amount is {amount} (principal={position.principal}, rate={position.rate})"
        )
    return amount


def lump_sum_total(position: Position) -> int:
    """Whole-term earning of a lump-sum position; `rate` is the total percentage."""
    total = percent_of(position.principal, position.rate)
    if total <= 0:
        raise AccrualDataIntegrityError(
            position.id, f"lump-sum total is {total} (principal={position.principal}, rate={position.rate})"
        )
    return total


def periods_credited(position: Position, amount: int) -> int:
    return position.cumulative_earned // amount


def all_periods_paid(position: Position, amount: int) -> bool:
    return periods_credited(position, amount) >= position.duration_periods


def next_due_after_credit(
    position: Position, now: datetime, period: timedelta, final_period: bool
) -> datetime:
    """Advance by exactly one period from max(next_due_at, now).

    Lands on `matures_at` when it would overshoot or when the credited
    period was the last one, so the following scan runs the maturity pass.
    """
    matures_at = ensure_utc(position.matures_at)
    base = ensure_utc(position.next_due_at) if position.next_due_at else now
    candidate = max(base, now) + period
    if final_period or candidate > matures_at:
        return matures_at
    return candidate


def is_matured(position: Position, now: datetime) -> bool:
    return ensure_utc(position.matures_at) <= now
