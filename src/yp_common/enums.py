"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class LedgerKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    EARNING = "earning"
    PRINCIPAL_RETURN = "principal_return"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    # Principal moved from available to locked when a position is opened
    INVESTMENT = "investment"


class PayoutMode(str, Enum):
    PERIODIC = "periodic"
    LUMP_SUM_AT_MATURITY = "lump_sum_at_maturity"


class PositionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


# period_key values for entries that happen once per position
PERIOD_KEY_MATURITY = "maturity"
PERIOD_KEY_OPEN = "open"
