"""yp_accrual internal REST API — accrual runs, on-demand check, reconciliation.

Called by the cron scheduler (run), the dashboard backend (check) and
operators (reconcile). All routes require the X-Internal-Token header.
"""

from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_accrual.application.engine import AccrualEngine
from src.yp_accrual.application.on_demand import run_user_check
from src.yp_accrual.application.reconciliation import ReconciliationService
from src.yp_accrual.application.schemas import (
    AccrualRunResponse,
    CheckAccrualRequest,
    ReconcileRequest,
    RunAccrualRequest,
)
from src.yp_common.database import get_db_session
from src.yp_common.redis_client import get_redis
from src.yp_common.response import ApiResponse, success_response
from src.yp_gateway.auth.dependencies import require_internal_token

router = APIRouter(
    prefix="/internal/accrual",
    tags=["accrual"],
    dependencies=[Depends(require_internal_token)],
)

_engine = AccrualEngine()
_reconciliation = ReconciliationService()


@router.post("/run")
async def run_accrual(
    request: Request,
    body: Annotated[RunAccrualRequest | None, Body()] = None,
) -> ApiResponse:
    body = body or RunAccrualRequest()
    result = await _engine.run_due_accrual(now=body.now, user_id=body.user_id)
    data = AccrualRunResponse.from_result(result)
    return success_response(data.model_dump(by_alias=True), request)


@router.post("/check")
async def check_accrual(
    body: CheckAccrualRequest,
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
    request: Request,
) -> ApiResponse:
    result = await run_user_check(_engine, redis, body.user_id)
    data = AccrualRunResponse.from_result(result)
    return success_response(data.model_dump(by_alias=True), request)


@router.get("/reconcile")
async def reconcile_report(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user: str = Query(..., min_length=1, description="User id to reconcile"),
) -> ApiResponse:
    report = await _reconciliation.reconcile_user(db, user, apply=False)
    return success_response(report.model_dump(by_alias=True), request)


@router.post("/reconcile")
async def reconcile_user(
    body: ReconcileRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    report = await _reconciliation.reconcile_user(db, body.user_id, apply=body.apply)
    return success_response(report.model_dump(by_alias=True), request)


@router.post("/reconcile/all")
async def reconcile_all(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    apply: bool = Query(False, description="Overwrite drifting caches and positions"),
) -> ApiResponse:
    data = await _reconciliation.reconcile_all(db, apply=apply)
    return success_response(data.model_dump(by_alias=True), request)
