"""Domain models for yp_investment — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.yp_common.enums import PayoutMode, PositionStatus


@dataclass
class Position:
    id: str
    user_id: str
    principal: int                  # cents, locked while active
    rate: Decimal                   # percent: per period (periodic) or whole term (lump sum)
    duration_periods: int
    payout_mode: str                # PayoutMode value; unknown values are rejected by the engine
    started_at: datetime
    matures_at: datetime
    next_due_at: datetime | None = None
    cumulative_earned: int = 0      # cents
    status: str = PositionStatus.ACTIVE.value
    plan_id: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PositionStatus.ACTIVE.value

    @property
    def is_periodic(self) -> bool:
        return self.payout_mode == PayoutMode.PERIODIC.value
