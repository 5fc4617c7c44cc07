"""InvestmentService — opens positions and serves position reads.

Opening a position is one transaction: the position row is inserted and an
`investment` ledger entry moves the principal from available to locked.
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.yp_account.domain.posting import post_ledger_entry
from src.yp_account.domain.repository import AccountRepositoryProtocol
from src.yp_account.infrastructure.persistence import AccountRepository
from src.yp_common.amounts import cents_to_display
from src.yp_common.datetime_utils import ensure_utc, utc_now
from src.yp_common.enums import PERIOD_KEY_OPEN, LedgerKind, PositionStatus
from src.yp_common.errors import PositionNotFoundError
from src.yp_investment.application.schemas import PositionListResponse, PositionResponse
from src.yp_investment.domain.models import Position
from src.yp_investment.domain.repository import PositionRepositoryProtocol
from src.yp_investment.domain.rules import (
    classify_payout_mode,
    initial_next_due,
    maturity_of,
    validate_terms,
)
from src.yp_investment.infrastructure.persistence import PositionRepository

logger = logging.getLogger(__name__)


class InvestmentService:
    def __init__(
        self,
        position_repo: PositionRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        period: timedelta | None = None,
        lump_sum_min_duration: int | None = None,
    ) -> None:
        self._positions: PositionRepositoryProtocol = position_repo or PositionRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._period = period or timedelta(hours=settings.ACCRUAL_PERIOD_HOURS)
        self._lump_sum_min = (
            lump_sum_min_duration
            if lump_sum_min_duration is not None
            else settings.LUMP_SUM_MIN_DURATION
        )

    async def open_position(
        self,
        db: AsyncSession,
        user_id: str,
        principal: int,
        rate: Decimal,
        duration_periods: int,
        plan_id: str | None = None,
        now: datetime | None = None,
    ) -> PositionResponse:
        validate_terms(principal, rate, duration_periods)
        started_at = ensure_utc(now) if now else utc_now()
        payout_mode = classify_payout_mode(duration_periods, self._lump_sum_min)
        position = Position(
            id=str(uuid.uuid4()),
            user_id=user_id,
            plan_id=plan_id,
            principal=principal,
            rate=rate,
            duration_periods=duration_periods,
            payout_mode=payout_mode.value,
            started_at=started_at,
            matures_at=maturity_of(started_at, duration_periods, self._period),
            next_due_at=initial_next_due(started_at, payout_mode),
            cumulative_earned=0,
            status=PositionStatus.ACTIVE.value,
        )
        try:
            created = await self._positions.create_position(db, position)
            await post_ledger_entry(
                self._accounts,
                db,
                user_id,
                LedgerKind.INVESTMENT,
                -principal,
                position_ref=created.id,
                period_key=PERIOD_KEY_OPEN,
                description=f"Investment of {cents_to_display(principal)}",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Position opened: id=%s user=%s principal=%d mode=%s matures_at=%s",
            created.id, user_id, principal, created.payout_mode, created.matures_at.isoformat(),
        )
        return PositionResponse.from_position(created)

    async def get_position(self, db: AsyncSession, position_id: str) -> PositionResponse:
        position = await self._positions.get_position(db, position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return PositionResponse.from_position(position)

    async def list_positions(self, db: AsyncSession, user_id: str) -> PositionListResponse:
        positions = await self._positions.list_positions_for_user(db, user_id)
        return PositionListResponse(
            items=[PositionResponse.from_position(p) for p in positions],
            total=len(positions),
        )
