"""Posting rules: how each ledger kind moves the Balance Cache.

This table is the only place the mapping lives. Writers apply it entry by
entry; reconciliation folds it over the whole ledger.
"""

from collections.abc import Iterable

from src.yp_account.domain.models import BalanceDelta, BalanceTotals, LedgerEntry
from src.yp_common.enums import LedgerKind
from src.yp_common.errors import InvalidLedgerAmountError

# kind -> required sign of amount (+1 income, -1 expense, 0 either)
_AMOUNT_SIGN: dict[LedgerKind, int] = {
    LedgerKind.DEPOSIT: 1,
    LedgerKind.WITHDRAWAL: -1,
    LedgerKind.EARNING: 1,
    LedgerKind.PRINCIPAL_RETURN: 1,
    LedgerKind.INVESTMENT: -1,
    LedgerKind.REFUND: 1,
    LedgerKind.ADMIN_ADJUSTMENT: 0,
}


def validate_amount(kind: LedgerKind | str, amount: int) -> None:
    """Reject zero amounts and amounts whose sign contradicts the kind."""
    sign = _AMOUNT_SIGN[LedgerKind(kind)]
    if amount == 0 or (sign > 0 and amount < 0) or (sign < 0 and amount > 0):
        raise InvalidLedgerAmountError(str(LedgerKind(kind).value), amount)


def balance_delta(kind: LedgerKind | str, amount: int) -> BalanceDelta:
    """Effect of one entry of `kind` with signed `amount` on the Balance Cache."""
    k = LedgerKind(kind)
    if k == LedgerKind.DEPOSIT:
        return BalanceDelta(available=amount, total_deposited=amount)
    if k == LedgerKind.WITHDRAWAL:
        return BalanceDelta(available=amount, total_withdrawn=-amount)
    if k == LedgerKind.EARNING:
        return BalanceDelta(available=amount, total_earned=amount)
    if k == LedgerKind.PRINCIPAL_RETURN:
        return BalanceDelta(available=amount, locked=-amount)
    if k == LedgerKind.INVESTMENT:
        return BalanceDelta(available=amount, locked=-amount)
    if k == LedgerKind.REFUND:
        return BalanceDelta(available=amount, total_withdrawn=-amount)
    # ADMIN_ADJUSTMENT
    return BalanceDelta(available=amount)


def fold_ledger(entries: Iterable[LedgerEntry]) -> BalanceTotals:
    """Recompute Balance Cache fields from a user's ledger entries."""
    totals = BalanceTotals()
    for entry in entries:
        totals = totals.apply(balance_delta(entry.kind, entry.amount))
    return totals
