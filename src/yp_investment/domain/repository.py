"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock (or the in-memory store) that conforms to this
Protocol. Infrastructure layer provides the real implementation.

Every mutating method is guarded on the state the caller last saw and
returns False when no row matched, so two concurrent runs cannot both
advance the same position.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_investment.domain.models import Position


class PositionRepositoryProtocol(Protocol):
    async def create_position(self, db: AsyncSession, position: Position) -> Position: ...

    async def get_position(self, db: AsyncSession, position_id: str) -> Position | None: ...

    async def list_positions_for_user(
        self, db: AsyncSession, user_id: str
    ) -> list[Position]: ...

    async def list_due_positions(
        self, db: AsyncSession, now: datetime, user_id: str | None = None
    ) -> list[Position]: ...

    async def record_period_credit(
        self,
        db: AsyncSession,
        position_id: str,
        expected_next_due: datetime | None,
        amount: int,
        next_due_at: datetime,
    ) -> bool: ...

    async def advance_schedule(
        self,
        db: AsyncSession,
        position_id: str,
        expected_next_due: datetime | None,
        next_due_at: datetime,
    ) -> bool: ...

    async def complete_position(
        self,
        db: AsyncSession,
        position_id: str,
        cumulative_earned: int,
        completed_at: datetime,
    ) -> bool: ...

    async def overwrite_position_state(
        self,
        db: AsyncSession,
        position_id: str,
        cumulative_earned: int,
        status: str,
        completed_at: datetime | None,
    ) -> bool: ...
