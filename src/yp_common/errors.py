"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Internal caller auth
  2xxx: Account / ledger
  5xxx: Position / accrual
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Internal caller auth ---

class InvalidInternalTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Missing or invalid internal token", 401)


# --- 2xxx: Account / ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} cents, available {available} cents",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Balance not found for user {user_id}", 404)


class LedgerIntegrityError(AppError):
    """Posting would drive the Balance Cache negative: cache and ledger have drifted."""

    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Ledger integrity violation: {detail}", 409)


class InvalidLedgerAmountError(AppError):
    def __init__(self, kind: str, amount: int) -> None:
        super().__init__(2004, f"Invalid amount {amount} for ledger kind {kind}", 422)


# --- 5xxx: Position / accrual ---

class PositionNotFoundError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5001, f"Position not found: {position_id}", 404)


class InvalidPositionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Invalid position: {detail}", 422)


class AccrualDataIntegrityError(AppError):
    """Position data cannot be accrued safely; needs manual reconciliation."""

    def __init__(self, position_id: str, detail: str) -> None:
        self.position_id = position_id
        super().__init__(5003, f"Position {position_id} flagged: {detail}", 409)


class UnknownPayoutModeError(AppError):
    def __init__(self, position_id: str, payout_mode: object) -> None:
        super().__init__(
            5004, f"Position {position_id} has unknown payout_mode {payout_mode!r}", 500
        )


class ConcurrentUpdateError(AppError):
    """Guarded UPDATE matched no row: another run already moved this position."""

    def __init__(self, position_id: str) -> None:
        super().__init__(5005, f"Position {position_id} was modified concurrently", 409)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
