"""Fee schedules router: per-period component rates and publishing."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_read_scope, get_write_scope
from app.auth.rbac import require_fee_manager
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationDispatcher, get_notifier
from app.core.session_scope import Scope
from app.db.session import get_db

from . import service
from .schemas import FeeSchedulePublish, FeeScheduleResponse, PublishResult

router = APIRouter(prefix="/api/v1/fee-schedules", tags=["fee-schedules"])


@router.get(
    "/periods",
    response_model=List[str],
    dependencies=[Depends(require_fee_manager)],
)
async def list_configured_periods(
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[str]:
    return await service.list_configured_periods(db, scope)


@router.get(
    "",
    response_model=FeeScheduleResponse,
    dependencies=[Depends(require_fee_manager)],
)
async def get_schedule(
    period_label: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> FeeScheduleResponse:
    schedule = await service.get_schedule(db, scope, period_label)
    return schedule or service.empty_schedule(scope, period_label)


@router.post("/publish", response_model=PublishResult)
async def publish_schedule(
    payload: FeeSchedulePublish,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    current_user: CurrentUser = Depends(require_fee_manager),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> PublishResult:
    try:
        return await service.publish(db, scope, payload, current_user.display_name, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
