"""Pydantic schemas for yp_investment API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.yp_common.amounts import cents_to_display
from src.yp_investment.domain.models import Position


class OpenPositionRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    principal_cents: int = Field(..., gt=0)
    rate: Decimal = Field(..., gt=0, max_digits=10, decimal_places=4)
    duration_periods: int = Field(..., gt=0)
    plan_id: str | None = Field(None, max_length=64)


class PositionResponse(BaseModel):
    id: str
    user_id: str
    plan_id: str | None
    principal_cents: int
    principal_display: str
    rate: str
    duration_periods: int
    payout_mode: str
    status: str
    cumulative_earned_cents: int
    cumulative_earned_display: str
    started_at: str
    matures_at: str
    next_due_at: str | None
    completed_at: str | None

    @classmethod
    def from_position(cls, p: Position) -> "PositionResponse":
        return cls(
            id=p.id,
            user_id=p.user_id,
            plan_id=p.plan_id,
            principal_cents=p.principal,
            principal_display=cents_to_display(p.principal),
            rate=str(p.rate),
            duration_periods=p.duration_periods,
            payout_mode=p.payout_mode,
            status=p.status,
            cumulative_earned_cents=p.cumulative_earned,
            cumulative_earned_display=cents_to_display(p.cumulative_earned),
            started_at=p.started_at.isoformat(),
            matures_at=p.matures_at.isoformat(),
            next_due_at=p.next_due_at.isoformat() if p.next_due_at else None,
            completed_at=p.completed_at.isoformat() if p.completed_at else None,
        )


class PositionListResponse(BaseModel):
    items: list[PositionResponse]
    total: int
