"""yp_account internal REST API — balance, ledger history and manual postings.

All routes require the X-Internal-Token header. Deposits, withdrawals and
refunds are posted here by the deposit watcher and the withdrawal workflow;
adjustments by admin tooling.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_account.application.schemas import (
    AdjustRequest,
    DepositRequest,
    RefundRequest,
    WithdrawRequest,
)
from src.yp_account.application.service import AccountApplicationService
from src.yp_common.database import get_db_session
from src.yp_common.enums import LedgerKind
from src.yp_common.response import ApiResponse, success_response
from src.yp_gateway.auth.dependencies import require_internal_token

router = APIRouter(
    prefix="/internal/accounts",
    tags=["accounts"],
    dependencies=[Depends(require_internal_token)],
)

_service = AccountApplicationService()


@router.get("/{user_id}/balance")
async def get_balance(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, user_id)
    return success_response(data.model_dump(), request)


@router.get("/{user_id}/ledger")
async def list_ledger(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    kind: LedgerKind | None = Query(None, description="Filter by ledger entry kind"),
) -> ApiResponse:
    data = await _service.list_ledger(
        db, user_id, cursor, limit, kind.value if kind else None
    )
    return success_response(data.model_dump(), request)


@router.post("/{user_id}/deposit")
async def deposit(
    user_id: str,
    body: DepositRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deposit(db, user_id, body.amount_cents, body.reference)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{user_id}/withdraw")
async def withdraw(
    user_id: str,
    body: WithdrawRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.withdraw(db, user_id, body.amount_cents, body.reference)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{user_id}/refund")
async def refund(
    user_id: str,
    body: RefundRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.refund(db, user_id, body.amount_cents, body.reference)
    return success_response(data.model_dump(mode="json"), request)


@router.post("/{user_id}/adjust")
async def adjust(
    user_id: str,
    body: AdjustRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.adjust(db, user_id, body.amount_cents, body.reason)
    return success_response(data.model_dump(mode="json"), request)
