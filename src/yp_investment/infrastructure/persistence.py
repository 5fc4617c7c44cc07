"""PositionRepository — concrete implementation of PositionRepositoryProtocol.

Scheduling updates are compare-and-set: each UPDATE carries the
`next_due_at` / `status` the caller read during the scan and reports
whether a row matched.

Transaction ownership: The CALLER (accrual engine or InvestmentService) is
responsible for starting and committing the transaction.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_investment.domain.models import Position

_POSITION_COLUMNS = """
    id, user_id, plan_id, principal, rate, duration_periods, payout_mode,
    started_at, matures_at, next_due_at, cumulative_earned, status,
    completed_at, created_at, updated_at
"""

_INSERT_POSITION_SQL = text(f"""
    INSERT INTO positions
        (id, user_id, plan_id, principal, rate, duration_periods, payout_mode,
         started_at, matures_at, next_due_at, cumulative_earned, status)
    VALUES
        (:id, :user_id, :plan_id, :principal, :rate, :duration_periods, :payout_mode,
         :started_at, :matures_at, :next_due_at, :cumulative_earned, :status)
    RETURNING {_POSITION_COLUMNS}
""")

_GET_POSITION_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE id = :id
""")

_LIST_USER_POSITIONS_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id
    ORDER BY started_at DESC, id
""")

# Matured positions of any mode, plus non-lump-sum positions whose next
# period is due. A row appears at most once.
_LIST_DUE_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE status = 'active'
      AND (CAST(:user_id AS VARCHAR) IS NULL OR user_id = :user_id)
      AND (
            matures_at <= :now
         OR (payout_mode <> 'lump_sum_at_maturity'
             AND (next_due_at IS NULL OR next_due_at <= :now))
      )
    ORDER BY matures_at ASC, id ASC
""")

_RECORD_CREDIT_SQL = text("""
    UPDATE positions
    SET cumulative_earned = cumulative_earned + :amount,
        next_due_at = :next_due_at,
        updated_at = NOW()
    WHERE id = :id
      AND status = 'active'
      AND next_due_at IS NOT DISTINCT FROM CAST(:expected AS TIMESTAMPTZ)
    RETURNING id
""")

_ADVANCE_SCHEDULE_SQL = text("""
    UPDATE positions
    SET next_due_at = :next_due_at,
        updated_at = NOW()
    WHERE id = :id
      AND status = 'active'
      AND next_due_at IS NOT DISTINCT FROM CAST(:expected AS TIMESTAMPTZ)
    RETURNING id
""")

_COMPLETE_SQL = text("""
    UPDATE positions
    SET status = 'completed',
        cumulative_earned = :cumulative_earned,
        completed_at = :completed_at,
        updated_at = NOW()
    WHERE id = :id
      AND status = 'active'
    RETURNING id
""")

_OVERWRITE_STATE_SQL = text("""
    UPDATE positions
    SET cumulative_earned = :cumulative_earned,
        status = :status,
        completed_at = :completed_at,
        updated_at = NOW()
    WHERE id = :id
    RETURNING id
""")


def _row_to_position(row: object) -> Position:
    return Position(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        plan_id=row.plan_id,  # type: ignore[attr-defined]
        principal=row.principal,  # type: ignore[attr-defined]
        rate=row.rate,  # type: ignore[attr-defined]
        duration_periods=row.duration_periods,  # type: ignore[attr-defined]
        payout_mode=row.payout_mode,  # type: ignore[attr-defined]
        started_at=row.started_at,  # type: ignore[attr-defined]
        matures_at=row.matures_at,  # type: ignore[attr-defined]
        next_due_at=row.next_due_at,  # type: ignore[attr-defined]
        cumulative_earned=row.cumulative_earned,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class PositionRepository:
    async def create_position(self, db: AsyncSession, position: Position) -> Position:
        result = await db.execute(
            _INSERT_POSITION_SQL,
            {
                "id": position.id,
                "user_id": position.user_id,
                "plan_id": position.plan_id,
                "principal": position.principal,
                "rate": position.rate,
                "duration_periods": position.duration_periods,
                "payout_mode": position.payout_mode,
                "started_at": position.started_at,
                "matures_at": position.matures_at,
                "next_due_at": position.next_due_at,
                "cumulative_earned": position.cumulative_earned,
                "status": position.status,
            },
        )
        return _row_to_position(result.fetchone())

    async def get_position(self, db: AsyncSession, position_id: str) -> Position | None:
        result = await db.execute(_GET_POSITION_SQL, {"id": position_id})
        row = result.fetchone()
        return _row_to_position(row) if row else None

    async def list_positions_for_user(
        self, db: AsyncSession, user_id: str
    ) -> list[Position]:
        result = await db.execute(_LIST_USER_POSITIONS_SQL, {"user_id": user_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def list_due_positions(
        self, db: AsyncSession, now: datetime, user_id: str | None = None
    ) -> list[Position]:
        result = await db.execute(_LIST_DUE_SQL, {"now": now, "user_id": user_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def record_period_credit(
        self,
        db: AsyncSession,
        position_id: str,
        expected_next_due: datetime | None,
        amount: int,
        next_due_at: datetime,
    ) -> bool:
        result = await db.execute(
            _RECORD_CREDIT_SQL,
            {
                "id": position_id,
                "expected": expected_next_due,
                "amount": amount,
                "next_due_at": next_due_at,
            },
        )
        return result.fetchone() is not None

    async def advance_schedule(
        self,
        db: AsyncSession,
        position_id: str,
        expected_next_due: datetime | None,
        next_due_at: datetime,
    ) -> bool:
        result = await db.execute(
            _ADVANCE_SCHEDULE_SQL,
            {"id": position_id, "expected": expected_next_due, "next_due_at": next_due_at},
        )
        return result.fetchone() is not None

    async def complete_position(
        self,
        db: AsyncSession,
        position_id: str,
        cumulative_earned: int,
        completed_at: datetime,
    ) -> bool:
        result = await db.execute(
            _COMPLETE_SQL,
            {
                "id": position_id,
                "cumulative_earned": cumulative_earned,
                "completed_at": completed_at,
            },
        )
        return result.fetchone() is not None

    async def overwrite_position_state(
        self,
        db: AsyncSession,
        position_id: str,
        cumulative_earned: int,
        status: str,
        completed_at: datetime | None,
    ) -> bool:
        result = await db.execute(
            _OVERWRITE_STATE_SQL,
            {
                "id": position_id,
                "cumulative_earned": cumulative_earned,
                "status": status,
                "completed_at": completed_at,
            },
        )
        return result.fetchone() is not None
