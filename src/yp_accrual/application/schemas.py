"""Pydantic schemas for yp_accrual API.

Accrual payloads are consumed by the dashboard backend and the cron
scheduler, which expect camelCase keys and amounts as decimal strings
("6.00"). Models accept snake_case too (populate_by_name) and are dumped
with by_alias=True.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.yp_accrual.application.engine import AccrualRunResult
from src.yp_common.amounts import cents_to_amount


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RunAccrualRequest(BaseModel):
    now: datetime | None = Field(None, description="Evaluation instant, defaults to current UTC time")
    user_id: str | None = Field(None, max_length=64, description="Restrict the scan to one owner")


class CheckAccrualRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)


class ReconcileRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    apply: bool = False


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AccrualRunResponse(_CamelModel):
    positions_scanned: int
    earnings_applied: int
    positions_completed: int
    total_earnings_credited: str
    total_principal_returned: str
    errors: list[str]
    flagged_positions: list[str]
    skipped_positions: list[str]

    @classmethod
    def from_result(cls, r: AccrualRunResult) -> "AccrualRunResponse":
        return cls(
            positions_scanned=r.positions_scanned,
            earnings_applied=r.earnings_applied,
            positions_completed=r.positions_completed,
            total_earnings_credited=cents_to_amount(r.total_earnings_credited),
            total_principal_returned=cents_to_amount(r.total_principal_returned),
            errors=list(r.errors),
            flagged_positions=list(r.flagged_positions),
            skipped_positions=list(r.skipped_positions),
        )


class BalanceFieldDrift(_CamelModel):
    field: str
    stored: str
    computed: str
    difference: str


class PositionDrift(_CamelModel):
    position_id: str
    status: str
    stored_cumulative_earned: str
    ledger_earned: str
    principal_returned: bool
    issues: list[str]


class ReconciliationReport(_CamelModel):
    user_id: str
    balance_drift: list[BalanceFieldDrift]
    position_drift: list[PositionDrift]
    applied: bool

    @property
    def has_drift(self) -> bool:
        return bool(self.balance_drift or self.position_drift)


class ReconcileAllResponse(_CamelModel):
    users_checked: int
    users_with_drift: int
    applied: bool
    reports: list[ReconciliationReport]
    errors: list[str] = []
