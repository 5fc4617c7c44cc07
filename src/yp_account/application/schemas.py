"""Pydantic schemas and cursor utilities for yp_account API."""

import base64
import json

from pydantic import BaseModel, Field

from src.yp_account.domain.models import Balance, LedgerEntry
from src.yp_common.amounts import cents_to_display
from src.yp_common.enums import LedgerKind

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Confirmed deposit amount in cents")
    reference: str | None = Field(None, max_length=64, description="External deposit id / tx hash")


class WithdrawRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Approved withdrawal amount in cents")
    reference: str | None = Field(None, max_length=64)


class RefundRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Refunded withdrawal amount in cents")
    reference: str | None = Field(None, max_length=64)


class AdjustRequest(BaseModel):
    amount_cents: int = Field(..., description="Signed adjustment in cents, non-zero")
    reason: str = Field(..., min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    available_cents: int
    available_display: str
    locked_cents: int
    locked_display: str
    total_balance_cents: int
    total_balance_display: str
    total_deposited_cents: int
    total_withdrawn_cents: int
    total_earned_cents: int

    @classmethod
    def from_balance(cls, balance: Balance) -> "BalanceResponse":
        return cls(
            user_id=balance.user_id,
            available_cents=balance.available,
            available_display=cents_to_display(balance.available),
            locked_cents=balance.locked,
            locked_display=cents_to_display(balance.locked),
            total_balance_cents=balance.total_balance,
            total_balance_display=cents_to_display(balance.total_balance),
            total_deposited_cents=balance.total_deposited,
            total_withdrawn_cents=balance.total_withdrawn,
            total_earned_cents=balance.total_earned,
        )


class PostingResponse(BaseModel):
    kind: LedgerKind
    amount_cents: int
    amount_display: str
    available_cents: int
    available_display: str
    ledger_entry_id: int

    @classmethod
    def from_result(
        cls, kind: LedgerKind, amount: int, available: int, entry_id: int
    ) -> "PostingResponse":
        return cls(
            kind=kind,
            amount_cents=amount,
            amount_display=cents_to_display(amount),
            available_cents=available,
            available_display=cents_to_display(available),
            ledger_entry_id=entry_id,
        )


class LedgerEntryItem(BaseModel):
    id: int
    kind: str
    amount_cents: int
    amount_display: str
    balance_before_cents: int
    balance_after_cents: int
    position_ref: str | None
    period_key: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_entry(cls, e: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=e.id,
            kind=e.kind,
            amount_cents=e.amount,
            amount_display=cents_to_display(e.amount),
            balance_before_cents=e.balance_before,
            balance_after_cents=e.balance_after,
            position_ref=e.position_ref,
            period_key=e.period_key,
            description=e.description,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
