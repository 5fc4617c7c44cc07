"""AccountApplicationService — thin composition layer.

Entry points used by the external collaborators (deposit detection, withdrawal
approval, admin top-up). Each posting commits on success and rolls back
on any error. Read operations (get_balance, list_ledger) need no explicit
transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    PostingResponse,
    cursor_decode,
    cursor_encode,
)
from src.yp_account.domain.posting import post_ledger_entry
from src.yp_account.domain.repository import AccountRepositoryProtocol
from src.yp_account.infrastructure.persistence import AccountRepository
from src.yp_common.enums import LedgerKind
from src.yp_common.errors import AccountNotFoundError, InternalError


class AccountApplicationService:
    def __init__(self, repo: AccountRepositoryProtocol | None = None) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        if balance is None:
            raise AccountNotFoundError(user_id)
        return BalanceResponse.from_balance(balance)

    async def deposit(
        self, db: AsyncSession, user_id: str, amount_cents: int, reference: str | None = None
    ) -> PostingResponse:
        return await self._post(
            db, user_id, LedgerKind.DEPOSIT, amount_cents, _describe("Deposit", reference)
        )

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount_cents: int, reference: str | None = None
    ) -> PostingResponse:
        return await self._post(
            db, user_id, LedgerKind.WITHDRAWAL, -amount_cents, _describe("Withdrawal", reference)
        )

    async def refund(
        self, db: AsyncSession, user_id: str, amount_cents: int, reference: str | None = None
    ) -> PostingResponse:
        return await self._post(
            db, user_id, LedgerKind.REFUND, amount_cents, _describe("Withdrawal refund", reference)
        )

    async def adjust(
        self, db: AsyncSession, user_id: str, amount_cents: int, reason: str
    ) -> PostingResponse:
        return await self._post(
            db, user_id, LedgerKind.ADMIN_ADJUSTMENT, amount_cents, f"Admin adjustment: {reason}"
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        kind: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(db, user_id, cursor_id, limit + 1, kind)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_entry(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def _post(
        self,
        db: AsyncSession,
        user_id: str,
        kind: LedgerKind,
        amount: int,
        description: str,
    ) -> PostingResponse:
        try:
            posting = await post_ledger_entry(
                self._repo, db, user_id, kind, amount, description=description
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if posting is None:
            # Only position-linked entries carry an idempotency key
            raise InternalError(f"Unexpected duplicate {kind.value} entry for user {user_id}")
        return PostingResponse.from_result(
            kind=kind,
            amount=amount,
            available=posting.balance.available,
            entry_id=posting.entry.id,
        )


def _describe(label: str, reference: str | None) -> str:
    return f"{label} ({reference})" if reference else label
