"""yp_investment internal REST API — open and list positions."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.yp_common.database import get_db_session
from src.yp_common.response import ApiResponse, success_response
from src.yp_gateway.auth.dependencies import require_internal_token
from src.yp_investment.application.schemas import OpenPositionRequest
from src.yp_investment.application.service import InvestmentService

router = APIRouter(
    prefix="/internal/positions",
    tags=["positions"],
    dependencies=[Depends(require_internal_token)],
)
_service = InvestmentService()


@router.post("")
async def open_position(
    body: OpenPositionRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_position(
        db,
        user_id=body.user_id,
        principal=body.principal_cents,
        rate=body.rate,
        duration_periods=body.duration_periods,
        plan_id=body.plan_id,
    )
    return success_response(data.model_dump(), request)


@router.get("")
async def list_positions(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user: str = Query(..., min_length=1, description="Owner user id"),
) -> ApiResponse:
    data = await _service.list_positions(db, user)
    return success_response(data.model_dump(), request)


@router.get("/{position_id}")
async def get_position(
    position_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_position(db, position_id)
    return success_response(data.model_dump(), request)
