"""In-memory store for engine, reconciliation and service tests.

InMemoryAccountRepository / InMemoryPositionRepository conform to the
repository Protocols and share one InMemoryStore. FakeSession mimics the
transaction semantics the SQL repositories rely on: changes made inside
`begin()` (or before `commit()`) are discarded on error / `rollback()`.
The ledger enforces the (position_ref, kind, period_key) unique index.
"""

import copy
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from src.yp_account.application.service import AccountApplicationService
from src.yp_account.domain.models import (
    Balance,
    BalanceDelta,
    BalanceTotals,
    LedgerEntry,
    NewLedgerEntry,
)
from src.yp_accrual.application.engine import AccrualEngine
from src.yp_accrual.application.reconciliation import ReconciliationService
from src.yp_common.enums import PayoutMode
from src.yp_investment.application.service import InvestmentService
from src.yp_investment.domain.models import Position

DAY = timedelta(days=1)
T0 = datetime(2026, 3, 1, 0, 0, tzinfo=UTC)


class InMemoryStore:
    def __init__(self) -> None:
        self.balances: dict[str, Balance] = {}
        self.ledger: list[LedgerEntry] = []
        self.positions: dict[str, Position] = {}
        self.next_ledger_id = 1
        # position_id -> exceptions raised (in order) by the next position updates
        self.failures: dict[str, list[Exception]] = {}

    def snapshot(self) -> tuple[Any, ...]:
        return copy.deepcopy(
            (self.balances, self.ledger, self.positions, self.next_ledger_id)
        )

    def restore(self, snap: tuple[Any, ...]) -> None:
        balances, ledger, positions, next_id = copy.deepcopy(snap)
        self.balances = balances
        self.ledger = ledger
        self.positions = positions
        self.next_ledger_id = next_id

    def entries_for(self, user_id: str, kind: str | None = None) -> list[LedgerEntry]:
        return [
            e for e in self.ledger
            if e.user_id == user_id and (kind is None or e.kind == kind)
        ]

    def raise_if_scheduled(self, position_id: str) -> None:
        pending = self.failures.get(position_id)
        if pending:
            raise pending.pop(0)


class _FakeTransaction:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._snap: tuple[Any, ...] | None = None

    async def __aenter__(self) -> "_FakeTransaction":
        self._snap = self._store.snapshot()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is not None and self._snap is not None:
            self._store.restore(self._snap)
        return False


class FakeSession:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._snap = store.snapshot()
        self._pinned = False
        self.execution_options: dict[str, Any] = {}

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        return False

    def begin(self) -> _FakeTransaction:
        return _FakeTransaction(self._store)

    def in_transaction(self) -> bool:
        return self._pinned

    async def connection(self, execution_options: dict[str, Any] | None = None) -> "FakeSession":
        # Starts a transaction: rollback returns the store to this point
        if not self._pinned:
            self._snap = self._store.snapshot()
            self._pinned = True
            self.execution_options = dict(execution_options or {})
        return self

    async def commit(self) -> None:
        self._snap = self._store.snapshot()
        self._pinned = False

    async def rollback(self) -> None:
        self._store.restore(self._snap)
        self._pinned = False


class FakeSessionFactory:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def __call__(self) -> FakeSession:
        return FakeSession(self._store)


class InMemoryAccountRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._s = store

    async def get_balance(self, db: Any, user_id: str) -> Balance | None:
        b = self._s.balances.get(user_id)
        return replace(b) if b else None

    async def lock_balance(self, db: Any, user_id: str) -> Balance:
        if user_id not in self._s.balances:
            self._s.balances[user_id] = Balance(user_id=user_id, available=0, locked=0)
        return replace(self._s.balances[user_id])

    async def append_ledger(self, db: Any, entry: NewLedgerEntry) -> LedgerEntry | None:
        if entry.position_ref is not None and entry.period_key is not None:
            for e in self._s.ledger:
                if (e.position_ref, e.kind, e.period_key) == (
                    entry.position_ref, entry.kind, entry.period_key
                ):
                    return None
        row = LedgerEntry(
            id=self._s.next_ledger_id,
            user_id=entry.user_id,
            kind=entry.kind,
            amount=entry.amount,
            balance_before=entry.balance_before,
            balance_after=entry.balance_after,
            position_ref=entry.position_ref,
            period_key=entry.period_key,
            description=entry.description,
            created_at=datetime.now(UTC),
        )
        self._s.next_ledger_id += 1
        self._s.ledger.append(row)
        return replace(row)

    async def apply_balance_delta(
        self, db: Any, user_id: str, delta: BalanceDelta
    ) -> Balance:
        b = self._s.balances[user_id]
        b.available += delta.available
        b.locked += delta.locked
        b.total_deposited += delta.total_deposited
        b.total_withdrawn += delta.total_withdrawn
        b.total_earned += delta.total_earned
        b.version += 1
        return replace(b)

    async def overwrite_balance(
        self, db: Any, user_id: str, totals: BalanceTotals
    ) -> Balance:
        b = self._s.balances.setdefault(user_id, Balance(user_id=user_id, available=0, locked=0))
        b.available = totals.available
        b.locked = totals.locked
        b.total_deposited = totals.total_deposited
        b.total_withdrawn = totals.total_withdrawn
        b.total_earned = totals.total_earned
        b.version += 1
        return replace(b)

    async def list_ledger_entries(
        self, db: Any, user_id: str, cursor_id: int | None, limit: int, kind: str | None
    ) -> list[LedgerEntry]:
        rows = [
            e for e in reversed(self._s.entries_for(user_id, kind))
            if cursor_id is None or e.id < cursor_id
        ]
        return rows[:limit]

    async def list_all_ledger_entries(self, db: Any, user_id: str) -> list[LedgerEntry]:
        return self._s.entries_for(user_id)

    async def list_balance_user_ids(self, db: Any) -> list[str]:
        return sorted(self._s.balances)


class InMemoryPositionRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._s = store

    async def create_position(self, db: Any, position: Position) -> Position:
        self._s.positions[position.id] = replace(position)
        return replace(position)

    async def get_position(self, db: Any, position_id: str) -> Position | None:
        p = self._s.positions.get(position_id)
        return replace(p) if p else None

    async def list_positions_for_user(self, db: Any, user_id: str) -> list[Position]:
        return [replace(p) for p in self._s.positions.values() if p.user_id == user_id]

    async def list_due_positions(
        self, db: Any, now: datetime, user_id: str | None = None
    ) -> list[Position]:
        due = []
        for p in self._s.positions.values():
            if p.status != "active" or (user_id is not None and p.user_id != user_id):
                continue
            periodic_due = p.payout_mode != PayoutMode.LUMP_SUM_AT_MATURITY.value and (
                p.next_due_at is None or p.next_due_at <= now
            )
            if p.matures_at <= now or periodic_due:
                due.append(replace(p))
        return sorted(due, key=lambda p: (p.matures_at, p.id))

    def _guarded(self, position_id: str, expected_next_due: Any, check_due: bool) -> Position | None:
        self._s.raise_if_scheduled(position_id)
        p = self._s.positions.get(position_id)
        if p is None or p.status != "active":
            return None
        if check_due and p.next_due_at != expected_next_due:
            return None
        return p

    async def record_period_credit(
        self, db: Any, position_id: str, expected_next_due: Any, amount: int, next_due_at: datetime
    ) -> bool:
        p = self._guarded(position_id, expected_next_due, check_due=True)
        if p is None:
            return False
        p.cumulative_earned += amount
        p.next_due_at = next_due_at
        return True

    async def advance_schedule(
        self, db: Any, position_id: str, expected_next_due: Any, next_due_at: datetime
    ) -> bool:
        p = self._guarded(position_id, expected_next_due, check_due=True)
        if p is None:
            return False
        p.next_due_at = next_due_at
        return True

    async def complete_position(
        self, db: Any, position_id: str, cumulative_earned: int, completed_at: datetime
    ) -> bool:
        p = self._guarded(position_id, None, check_due=False)
        if p is None:
            return False
        p.status = "completed"
        p.cumulative_earned = cumulative_earned
        p.completed_at = completed_at
        return True

    async def overwrite_position_state(
        self,
        db: Any,
        position_id: str,
        cumulative_earned: int,
        status: str,
        completed_at: datetime | None,
    ) -> bool:
        p = self._s.positions.get(position_id)
        if p is None:
            return False
        p.cumulative_earned = cumulative_earned
        p.status = status
        p.completed_at = completed_at
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def account_repo(store: InMemoryStore) -> InMemoryAccountRepository:
    return InMemoryAccountRepository(store)


@pytest.fixture
def position_repo(store: InMemoryStore) -> InMemoryPositionRepository:
    return InMemoryPositionRepository(store)


@pytest.fixture
def session(store: InMemoryStore) -> FakeSession:
    return FakeSession(store)


@pytest.fixture
def accrual_engine(
    store: InMemoryStore,
    account_repo: InMemoryAccountRepository,
    position_repo: InMemoryPositionRepository,
) -> AccrualEngine:
    return AccrualEngine(
        session_factory=FakeSessionFactory(store),  # type: ignore[arg-type]
        account_repo=account_repo,
        position_repo=position_repo,
        period=DAY,
        max_retries=2,
        retry_backoff=0,
    )


@pytest.fixture
def reconciliation(
    account_repo: InMemoryAccountRepository,
    position_repo: InMemoryPositionRepository,
) -> ReconciliationService:
    return ReconciliationService(account_repo=account_repo, position_repo=position_repo)


@pytest.fixture
def accounts(account_repo: InMemoryAccountRepository) -> AccountApplicationService:
    return AccountApplicationService(repo=account_repo)


@pytest.fixture
def investments(
    account_repo: InMemoryAccountRepository,
    position_repo: InMemoryPositionRepository,
) -> InvestmentService:
    return InvestmentService(
        position_repo=position_repo,
        account_repo=account_repo,
        period=DAY,
        lump_sum_min_duration=30,
    )


@pytest.fixture
def open_funded_position(
    store: InMemoryStore,
    accounts: AccountApplicationService,
    investments: InvestmentService,
) -> Callable[..., Any]:
    """Deposit the principal, then open a position at `started_at` (default T0)."""

    async def _open(
        user_id: str = "user-1",
        principal: int = 10000,
        rate: str = "2",
        duration: int = 3,
        started_at: datetime = T0,
    ) -> str:
        await accounts.deposit(FakeSession(store), user_id, principal)  # type: ignore[arg-type]
        resp = await investments.open_position(
            FakeSession(store),  # type: ignore[arg-type]
            user_id=user_id,
            principal=principal,
            rate=Decimal(rate),
            duration_periods=duration,
            now=started_at,
        )
        return resp.id

    return _open
