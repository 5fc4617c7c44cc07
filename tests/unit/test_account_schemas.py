"""Tests for yp_account Pydantic schemas."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.yp_account.application.schemas import (
    AdjustRequest,
    BalanceResponse,
    DepositRequest,
    LedgerEntryItem,
    PostingResponse,
    WithdrawRequest,
)
from src.yp_account.domain.models import Balance, LedgerEntry
from src.yp_common.enums import LedgerKind


class TestRequests:
    def test_deposit_valid(self) -> None:
        req = DepositRequest(amount_cents=10000, reference="0xabc")
        assert req.amount_cents == 10000
        assert req.reference == "0xabc"

    @pytest.mark.parametrize("amount", [0, -100])
    def test_deposit_non_positive_rejected(self, amount: int) -> None:
        with pytest.raises(ValidationError):
            DepositRequest(amount_cents=amount)

    def test_withdraw_zero_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WithdrawRequest(amount_cents=0)

    def test_adjust_allows_negative(self) -> None:
        assert AdjustRequest(amount_cents=-500, reason="fix").amount_cents == -500

    def test_adjust_requires_reason(self) -> None:
        with pytest.raises(ValidationError):
            AdjustRequest(amount_cents=500, reason="")


class TestResponses:
    def test_balance_from_balance(self) -> None:
        resp = BalanceResponse.from_balance(
            Balance(user_id="user-1", available=600, locked=10000, total_earned=600)
        )
        assert resp.total_balance_cents == 10600
        assert resp.locked_display == "100.00 USDT"
        assert resp.total_earned_cents == 600

    def test_posting_from_result(self) -> None:
        resp = PostingResponse.from_result(LedgerKind.WITHDRAWAL, -3000, 7000, 12)
        assert resp.amount_display == "-30.00 USDT"
        assert resp.ledger_entry_id == 12

    def test_ledger_item_from_entry(self) -> None:
        created = datetime(2026, 3, 1, tzinfo=UTC)
        item = LedgerEntryItem.from_entry(
            LedgerEntry(
                id=3,
                user_id="user-1",
                kind="earning",
                amount=200,
                balance_before=0,
                balance_after=200,
                position_ref="p-1",
                period_key="2026-03-01",
                created_at=created,
            )
        )
        assert item.period_key == "2026-03-01"
        assert item.created_at == created.isoformat()
