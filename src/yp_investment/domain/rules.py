"""Position terms: payout-mode classification and the initial schedule."""

from datetime import datetime, timedelta
from decimal import Decimal

from src.yp_common.enums import PayoutMode
from src.yp_common.errors import InvalidPositionError


def classify_payout_mode(duration_periods: int, lump_sum_min_duration: int) -> PayoutMode:
    """Short plans pay every period; plans of lump_sum_min_duration periods or more pay at maturity."""
    if duration_periods < lump_sum_min_duration:
        return PayoutMode.PERIODIC
    return PayoutMode.LUMP_SUM_AT_MATURITY


def validate_terms(principal: int, rate: Decimal, duration_periods: int) -> None:
    if principal <= 0:
        raise InvalidPositionError(f"principal must be positive, got {principal}")
    if rate <= 0:
        raise InvalidPositionError(f"rate must be positive, got {rate}")
    if duration_periods <= 0:
        raise InvalidPositionError(f"duration_periods must be positive, got {duration_periods}")


def maturity_of(started_at: datetime, duration_periods: int, period: timedelta) -> datetime:
    return started_at + duration_periods * period


def initial_next_due(started_at: datetime, payout_mode: PayoutMode) -> datetime | None:
    # Periodic positions are due immediately: the first period is credited
    # on the first scan after purchase. Lump-sum positions only wait for maturity.
    if payout_mode is PayoutMode.PERIODIC:
        return started_at
    return None
