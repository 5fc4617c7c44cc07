"""AccrualEngine — credits due periodic earnings and completes matured positions.

One engine entry point serves the daily cron and the per-user on-demand
check. Each due position is processed in its own transaction:

    lock balance row → idempotent ledger insert → balance cache update
    → guarded position update

so the three stores move together or not at all. Concurrent runs need no
global lock: the ledger unique index rejects the second credit, and the
guarded position UPDATE rejects the second scheduling change.

Per-position failures never abort the run; they are collected into
AccrualRunResult. Only a failure to read the due positions propagates.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.yp_account.domain.posting import post_ledger_entry
from src.yp_account.domain.repository import AccountRepositoryProtocol
from src.yp_account.infrastructure.persistence import AccountRepository
from src.yp_accrual.domain.schedule import (
    all_periods_paid,
    is_matured,
    lump_sum_total,
    next_due_after_credit,
    period_amount,
    periods_credited,
)
from src.yp_common.database import async_session_factory, is_transient_store_error
from src.yp_common.datetime_utils import ensure_utc, utc_date_key, utc_now
from src.yp_common.enums import PERIOD_KEY_MATURITY, LedgerKind, PayoutMode
from src.yp_common.errors import (
    AccrualDataIntegrityError,
    AppError,
    ConcurrentUpdateError,
    LedgerIntegrityError,
    UnknownPayoutModeError,
)
from src.yp_investment.domain.models import Position
from src.yp_investment.domain.repository import PositionRepositoryProtocol
from src.yp_investment.infrastructure.persistence import PositionRepository

logger = logging.getLogger(__name__)

_KNOWN_PAYOUT_MODES = {mode.value for mode in PayoutMode}


@dataclass
class PositionOutcome:
    earnings_applied: int = 0
    earning_credited: int = 0       # cents
    principal_returned: int = 0     # cents
    completed: bool = False


@dataclass
class AccrualRunResult:
    positions_scanned: int = 0
    earnings_applied: int = 0
    positions_completed: int = 0
    total_earnings_credited: int = 0    # cents
    total_principal_returned: int = 0   # cents
    errors: list[str] = field(default_factory=list)
    flagged_positions: list[str] = field(default_factory=list)
    skipped_positions: list[str] = field(default_factory=list)

    def record(self, outcome: PositionOutcome) -> None:
        self.earnings_applied += outcome.earnings_applied
        self.total_earnings_credited += outcome.earning_credited
        self.total_principal_returned += outcome.principal_returned
        if outcome.completed:
            self.positions_completed += 1


class AccrualEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        position_repo: PositionRepositoryProtocol | None = None,
        period: timedelta | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._positions: PositionRepositoryProtocol = position_repo or PositionRepository()
        self._period = period or timedelta(hours=settings.ACCRUAL_PERIOD_HOURS)
        self._max_retries = (
            max_retries if max_retries is not None else settings.ACCRUAL_MAX_RETRIES
        )
        self._retry_backoff = (
            retry_backoff
            if retry_backoff is not None
            else settings.ACCRUAL_RETRY_BACKOFF_SECONDS
        )

    async def run_due_accrual(
        self, now: datetime | None = None, user_id: str | None = None
    ) -> AccrualRunResult:
        """Process every position due at `now` (default: current UTC time).

        `user_id` restricts the scan to one owner (on-demand check).
        """
        now = ensure_utc(now) if now else utc_now()
        result = AccrualRunResult()

        async with self._session_factory() as db:
            due = await self._positions.list_due_positions(db, now, user_id)
        result.positions_scanned = len(due)

        for position in due:
            await self._process_with_retry(position, now, result)

        logger.info(
            "Accrual run at %s: scanned=%d earnings=%d completed=%d credited=%d "
            "returned=%d errors=%d flagged=%d skipped=%d",
            now.isoformat(),
            result.positions_scanned,
            result.earnings_applied,
            result.positions_completed,
            result.total_earnings_credited,
            result.total_principal_returned,
            len(result.errors),
            len(result.flagged_positions),
            len(result.skipped_positions),
        )
        return result

    # ------------------------------------------------------------------
    # Per-position isolation
    # ------------------------------------------------------------------

    async def _process_with_retry(
        self, position: Position, now: datetime, result: AccrualRunResult
    ) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                outcome = await self._process_in_transaction(position, now)
            except ConcurrentUpdateError:
                logger.info("Position %s changed by a concurrent run, skipped", position.id)
                result.skipped_positions.append(position.id)
                return
            except (AccrualDataIntegrityError, LedgerIntegrityError) as exc:
                logger.error("Position %s flagged: %s", position.id, exc.message)
                result.flagged_positions.append(position.id)
                result.errors.append(f"{position.id}: {exc.message}")
                return
            except AppError as exc:
                logger.error("Position %s failed: %s", position.id, exc.message)
                result.errors.append(f"{position.id}: {exc.message}")
                return
            except Exception as exc:
                if is_transient_store_error(exc) and attempt <= self._max_retries:
                    logger.warning(
                        "Transient store error on position %s (attempt %d/%d): %s",
                        position.id, attempt, self._max_retries + 1, exc,
                    )
                    await asyncio.sleep(self._retry_backoff * attempt)
                    continue
                logger.exception("Unexpected error processing position %s", position.id)
                result.errors.append(f"{position.id}: {type(exc).__name__}: {exc}")
                return
            result.record(outcome)
            return

    async def _process_in_transaction(
        self, position: Position, now: datetime
    ) -> PositionOutcome:
        async with self._session_factory() as db:
            async with db.begin():
                return await self._process(db, position, now)

    async def _process(
        self, db: AsyncSession, position: Position, now: datetime
    ) -> PositionOutcome:
        if position.payout_mode not in _KNOWN_PAYOUT_MODES:
            raise UnknownPayoutModeError(position.id, position.payout_mode)
        if is_matured(position, now):
            # Maturity supersedes a final period credit due at the same scan
            return await self._complete(db, position, now)
        if position.payout_mode == PayoutMode.LUMP_SUM_AT_MATURITY.value:
            return PositionOutcome()
        return await self._credit_period(db, position, now)

    # ------------------------------------------------------------------
    # Periodic earning
    # ------------------------------------------------------------------

    async def _credit_period(
        self, db: AsyncSession, position: Position, now: datetime
    ) -> PositionOutcome:
        amount = period_amount(position)
        if all_periods_paid(position, amount):
            await self._advance(db, position, ensure_utc(position.matures_at))
            return PositionOutcome()

        due_at = ensure_utc(position.next_due_at) if position.next_due_at else now
        period_no = periods_credited(position, amount) + 1
        posting = await post_ledger_entry(
            self._accounts,
            db,
            position.user_id,
            LedgerKind.EARNING,
            amount,
            position_ref=position.id,
            period_key=utc_date_key(due_at),
            description=f"Earning {period_no}/{position.duration_periods}",
        )
        if posting is None:
            await self._advance(
                db, position, next_due_after_credit(position, now, self._period, False)
            )
            return PositionOutcome()

        final_period = period_no >= position.duration_periods
        next_due = next_due_after_credit(position, now, self._period, final_period)
        updated = await self._positions.record_period_credit(
            db, position.id, position.next_due_at, amount, next_due
        )
        if not updated:
            raise ConcurrentUpdateError(position.id)
        return PositionOutcome(earnings_applied=1, earning_credited=amount)

    async def _advance(
        self, db: AsyncSession, position: Position, next_due_at: datetime
    ) -> None:
        updated = await self._positions.advance_schedule(
            db, position.id, position.next_due_at, next_due_at
        )
        if not updated:
            raise ConcurrentUpdateError(position.id)

    # ------------------------------------------------------------------
    # Maturity
    # ------------------------------------------------------------------

    async def _complete(
        self, db: AsyncSession, position: Position, now: datetime
    ) -> PositionOutcome:
        outcome = PositionOutcome(completed=True)
        cumulative = position.cumulative_earned

        if position.payout_mode == PayoutMode.LUMP_SUM_AT_MATURITY.value:
            total = lump_sum_total(position)
            earning = await post_ledger_entry(
                self._accounts,
                db,
                position.user_id,
                LedgerKind.EARNING,
                total,
                position_ref=position.id,
                period_key=PERIOD_KEY_MATURITY,
                description="Earning at maturity",
            )
            if earning is not None:
                outcome.earnings_applied = 1
                outcome.earning_credited = total
            cumulative = total

        returned = await post_ledger_entry(
            self._accounts,
            db,
            position.user_id,
            LedgerKind.PRINCIPAL_RETURN,
            position.principal,
            position_ref=position.id,
            period_key=PERIOD_KEY_MATURITY,
            description="Principal returned at maturity",
        )
        if returned is not None:
            outcome.principal_returned = position.principal

        completed = await self._positions.complete_position(db, position.id, cumulative, now)
        if not completed:
            raise ConcurrentUpdateError(position.id)
        logger.info(
            "Position %s completed: earned=%d principal_returned=%d",
            position.id, cumulative, outcome.principal_returned,
        )
        return outcome
