"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock (or an in-memory store) that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.domain.models import (
    Balance,
    BalanceDelta,
    BalanceTotals,
    LedgerEntry,
    NewLedgerEntry,
)


class AccountRepositoryProtocol(Protocol):
    async def get_balance(self, db: AsyncSession, user_id: str) -> Balance | None: ...

    async def lock_balance(self, db: AsyncSession, user_id: str) -> Balance:
        """Create the row if missing, then SELECT ... FOR UPDATE it."""
        ...

    async def append_ledger(
        self, db: AsyncSession, entry: NewLedgerEntry
    ) -> LedgerEntry | None:
        """Insert one entry. None when (position_ref, kind, period_key) already exists."""
        ...

    async def apply_balance_delta(
        self, db: AsyncSession, user_id: str, delta: BalanceDelta
    ) -> Balance: ...

    async def overwrite_balance(
        self, db: AsyncSession, user_id: str, totals: BalanceTotals
    ) -> Balance: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]: ...

    async def list_all_ledger_entries(
        self, db: AsyncSession, user_id: str
    ) -> list[LedgerEntry]: ...

    async def list_balance_user_ids(self, db: AsyncSession) -> list[str]: ...
