"""Append one ledger entry and move the Balance Cache with it.

Must run inside the caller's transaction: the balance row lock, the ledger
insert and the cache update commit or roll back together.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.domain.models import BalanceTotals, NewLedgerEntry, Posting
from src.yp_account.domain.repository import AccountRepositoryProtocol
from src.yp_account.domain.rules import balance_delta, validate_amount
from src.yp_common.enums import LedgerKind
from src.yp_common.errors import InsufficientBalanceError, LedgerIntegrityError

logger = logging.getLogger(__name__)

_SPENDING_KINDS = {LedgerKind.WITHDRAWAL, LedgerKind.INVESTMENT}


async def post_ledger_entry(
    repo: AccountRepositoryProtocol,
    db: AsyncSession,
    user_id: str,
    kind: LedgerKind,
    amount: int,
    position_ref: str | None = None,
    period_key: str | None = None,
    description: str | None = None,
) -> Posting | None:
    """Returns None on an idempotency hit (entry already present, nothing written).

    Raises InsufficientBalanceError when a withdrawal/investment exceeds
    `available`, and LedgerIntegrityError when any other kind would drive
    the cache negative (e.g. releasing more principal than is locked).
    """
    validate_amount(kind, amount)
    balance = await repo.lock_balance(db, user_id)
    delta = balance_delta(kind, amount)
    after = BalanceTotals.of(balance).apply(delta)

    entry = await repo.append_ledger(
        db,
        NewLedgerEntry(
            user_id=user_id,
            kind=kind.value,
            amount=amount,
            balance_before=balance.available,
            balance_after=after.available,
            position_ref=position_ref,
            period_key=period_key,
            description=description,
        ),
    )
    if entry is None:
        logger.info(
            "Ledger idempotency hit: user=%s kind=%s position=%s period=%s",
            user_id, kind.value, position_ref, period_key,
        )
        return None

    if after.available < 0 and kind in _SPENDING_KINDS:
        raise InsufficientBalanceError(-amount, balance.available)
    if after.available < 0 or after.locked < 0:
        raise LedgerIntegrityError(
            f"{kind.value} of {amount} cents for user {user_id} leaves "
            f"available={after.available} locked={after.locked}"
        )

    updated = await repo.apply_balance_delta(db, user_id, delta)
    return Posting(entry=entry, balance=updated)
