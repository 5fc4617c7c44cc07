"""ReconciliationService — rebuilds derived state from the ledger.

The ledger is the source of truth. The Balance Cache is the fold of a
user's entries under the posting rules, and a position's
`cumulative_earned` is the sum of its `earning` entries. A position whose
`principal_return` exists is completed.

Read-only by default: the ledger, balance and positions are read from one
REPEATABLE READ snapshot, so a posting committed mid-report cannot show up
as drift. With apply=True the user's balance row is locked first, then the
cache row and the drifting positions are overwritten and committed
together. Running apply twice reports no drift the second time.

Completed periodic positions with fewer earning entries than periods are
reported as missing periods (missed scans) but never rewritten.
"""

import logging
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.domain.models import BalanceTotals, LedgerEntry
from src.yp_account.domain.repository import AccountRepositoryProtocol
from src.yp_account.domain.rules import fold_ledger
from src.yp_account.infrastructure.persistence import AccountRepository
from src.yp_accrual.application.schemas import (
    BalanceFieldDrift,
    PositionDrift,
    ReconcileAllResponse,
    ReconciliationReport,
)
from src.yp_common.amounts import cents_to_amount
from src.yp_common.datetime_utils import utc_now
from src.yp_common.enums import LedgerKind, PositionStatus
from src.yp_investment.domain.models import Position
from src.yp_investment.domain.repository import PositionRepositoryProtocol
from src.yp_investment.infrastructure.persistence import PositionRepository

logger = logging.getLogger(__name__)

_BALANCE_FIELDS = (
    "available",
    "locked",
    "total_deposited",
    "total_withdrawn",
    "total_earned",
)


class ReconciliationService:
    def __init__(
        self,
        account_repo: AccountRepositoryProtocol | None = None,
        position_repo: PositionRepositoryProtocol | None = None,
    ) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._positions: PositionRepositoryProtocol = position_repo or PositionRepository()

    async def reconcile_user(
        self, db: AsyncSession, user_id: str, apply: bool = False
    ) -> ReconciliationReport:
        try:
            await _begin(db, apply)
            if apply:
                # Serialize against concurrent postings for this user
                await self._accounts.lock_balance(db, user_id)

            entries = await self._accounts.list_all_ledger_entries(db, user_id)
            computed = fold_ledger(entries)
            balance = await self._accounts.get_balance(db, user_id)
            stored = BalanceTotals.of(balance) if balance else BalanceTotals()
            balance_drift = _diff_totals(stored, computed)

            positions = await self._positions.list_positions_for_user(db, user_id)
            position_drift, fixes = _diff_positions(positions, entries)

            applied = False
            if apply and (balance_drift or fixes):
                if balance_drift:
                    await self._accounts.overwrite_balance(db, user_id, computed)
                now = utc_now()
                for position, earned, complete in fixes:
                    await self._positions.overwrite_position_state(
                        db,
                        position.id,
                        earned,
                        PositionStatus.COMPLETED.value if complete else position.status,
                        (position.completed_at or now) if complete else position.completed_at,
                    )
                applied = True
            if apply:
                await db.commit()
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise

        report = ReconciliationReport(
            user_id=user_id,
            balance_drift=balance_drift,
            position_drift=position_drift,
            applied=applied,
        )
        if report.has_drift:
            logger.warning(
                "Reconciliation drift for user %s: balance_fields=%s positions=%s applied=%s",
                user_id,
                [d.field for d in balance_drift],
                [d.position_id for d in position_drift],
                applied,
            )
        return report

    async def reconcile_all(
        self, db: AsyncSession, apply: bool = False
    ) -> ReconcileAllResponse:
        """Reconcile every user with a balance row; only drifting users are reported.

        A user whose reconciliation fails is rolled back, logged and listed in
        `errors`; the sweep continues with the next user.
        """
        user_ids = await self._accounts.list_balance_user_ids(db)
        # Each user runs in its own transaction
        await db.commit()
        reports = []
        errors = []
        for user_id in user_ids:
            try:
                report = await self.reconcile_user(db, user_id, apply=apply)
            except Exception as exc:
                logger.exception("Reconciliation failed for user %s", user_id)
                errors.append(f"{user_id}: {type(exc).__name__}: {exc}")
                continue
            if report.has_drift:
                reports.append(report)
        logger.info(
            "Reconciliation sweep: users=%d drifting=%d errors=%d apply=%s",
            len(user_ids), len(reports), len(errors), apply,
        )
        return ReconcileAllResponse(
            users_checked=len(user_ids),
            users_with_drift=len(reports),
            applied=apply,
            reports=reports,
            errors=errors,
        )


async def _begin(db: AsyncSession, apply: bool) -> None:
    """Pin the connection for this user's transaction.

    Read-only reports use REPEATABLE READ so every read sees one snapshot.
    Apply keeps READ COMMITTED and relies on the balance row lock.
    """
    if db.in_transaction():
        return
    if apply:
        await db.connection()
    else:
        await db.connection(execution_options={"isolation_level": "REPEATABLE READ"})


def _diff_totals(stored: BalanceTotals, computed: BalanceTotals) -> list[BalanceFieldDrift]:
    drift = []
    for name in _BALANCE_FIELDS:
        s, c = getattr(stored, name), getattr(computed, name)
        if s != c:
            drift.append(
                BalanceFieldDrift(
                    field=name,
                    stored=cents_to_amount(s),
                    computed=cents_to_amount(c),
                    difference=cents_to_amount(c - s),
                )
            )
    return drift


def _diff_positions(
    positions: list[Position], entries: list[LedgerEntry]
) -> tuple[list[PositionDrift], list[tuple[Position, int, bool]]]:
    """Compare each position with its ledger entries.

    Returns the drift report and the fixes apply mode should write:
    (position, ledger-derived cumulative_earned, mark completed).
    """
    earned: dict[str, int] = defaultdict(int)
    credited: dict[str, int] = defaultdict(int)
    returned: set[str] = set()
    for e in entries:
        if e.position_ref is None:
            continue
        if e.kind == LedgerKind.EARNING.value:
            earned[e.position_ref] += e.amount
            credited[e.position_ref] += 1
        elif e.kind == LedgerKind.PRINCIPAL_RETURN.value:
            returned.add(e.position_ref)

    drift: list[PositionDrift] = []
    fixes: list[tuple[Position, int, bool]] = []
    for p in positions:
        ledger_earned = earned.get(p.id, 0)
        principal_returned = p.id in returned
        issues = []
        if p.cumulative_earned != ledger_earned:
            issues.append("cumulative_earned differs from earning entries")
        complete = p.is_active and principal_returned
        if complete:
            issues.append("principal returned but position still active")
        if not p.is_active and not principal_returned:
            # Needs a principal_return posting, not an overwrite
            issues.append("completed without a principal_return entry")
        if p.is_periodic and (complete or not p.is_active):
            paid = credited.get(p.id, 0)
            if paid < p.duration_periods:
                # Missed scans; needs a backfill posting, not an overwrite
                issues.append(f"missing periods: {paid} of {p.duration_periods} credited")
        if not issues:
            continue
        drift.append(
            PositionDrift(
                position_id=p.id,
                status=p.status,
                stored_cumulative_earned=cents_to_amount(p.cumulative_earned),
                ledger_earned=cents_to_amount(ledger_earned),
                principal_returned=principal_returned,
                issues=issues,
            )
        )
        if p.cumulative_earned != ledger_earned or complete:
            fixes.append((p, ledger_earned, complete))
    return drift, fixes
