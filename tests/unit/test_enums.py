"""Tests for yp_common.enums — all enum values must match DB CHECK constraints."""

from src.yp_common.enums import (
    PERIOD_KEY_MATURITY,
    PERIOD_KEY_OPEN,
    LedgerKind,
    PayoutMode,
    PositionStatus,
)


class TestAllEnumsAreStr:
    def test_ledger_kind_is_str(self) -> None:
        assert isinstance(LedgerKind.EARNING, str)
        assert LedgerKind.EARNING == "earning"

    def test_payout_mode_is_str(self) -> None:
        assert PayoutMode.PERIODIC == "periodic"


class TestLedgerKind:
    def test_all_values(self) -> None:
        expected = {
            "deposit", "withdrawal", "earning", "principal_return",
            "refund", "admin_adjustment", "investment",
        }
        assert {k.value for k in LedgerKind} == expected


class TestPositionEnums:
    def test_payout_modes(self) -> None:
        assert {m.value for m in PayoutMode} == {"periodic", "lump_sum_at_maturity"}

    def test_statuses(self) -> None:
        assert {s.value for s in PositionStatus} == {"active", "completed"}

    def test_period_keys_cannot_collide_with_dates(self) -> None:
        for key in (PERIOD_KEY_MATURITY, PERIOD_KEY_OPEN):
            assert not key[0].isdigit()
