"""Domain models for yp_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Balance:
    user_id: str
    available: int            # cents
    locked: int               # cents, principal of active positions
    total_deposited: int = 0  # cents
    total_withdrawn: int = 0  # cents
    total_earned: int = 0     # cents
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_balance(self) -> int:
        return self.available + self.locked


@dataclass
class NewLedgerEntry:
    user_id: str
    kind: str                         # LedgerKind value
    amount: int                       # cents, positive=income negative=expense
    balance_before: int               # cents, available snapshot before op
    balance_after: int                # cents, available snapshot after op
    position_ref: str | None = None
    period_key: str | None = None     # idempotency window for position-linked entries
    description: str | None = None


@dataclass
class LedgerEntry:
    id: int                           # BIGSERIAL
    user_id: str
    kind: str
    amount: int
    balance_before: int
    balance_after: int
    position_ref: str | None = None
    period_key: str | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class BalanceDelta:
    available: int = 0
    locked: int = 0
    total_deposited: int = 0
    total_withdrawn: int = 0
    total_earned: int = 0


@dataclass
class BalanceTotals:
    """Balance Cache fields as derived purely from the ledger."""

    available: int = 0
    locked: int = 0
    total_deposited: int = 0
    total_withdrawn: int = 0
    total_earned: int = 0

    def apply(self, delta: BalanceDelta) -> "BalanceTotals":
        return BalanceTotals(
            available=self.available + delta.available,
            locked=self.locked + delta.locked,
            total_deposited=self.total_deposited + delta.total_deposited,
            total_withdrawn=self.total_withdrawn + delta.total_withdrawn,
            total_earned=self.total_earned + delta.total_earned,
        )

    @classmethod
    def of(cls, balance: Balance) -> "BalanceTotals":
        return cls(
            available=balance.available,
            locked=balance.locked,
            total_deposited=balance.total_deposited,
            total_withdrawn=balance.total_withdrawn,
            total_earned=balance.total_earned,
        )


@dataclass
class Posting:
    """Result of one successful ledger append plus its Balance Cache update."""

    entry: LedgerEntry
    balance: Balance
