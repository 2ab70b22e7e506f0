"""Occasional fees router: apply batches, batch history/detail and fee type presets."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_read_scope, get_write_scope
from app.auth.rbac import require_fee_manager
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationDispatcher, get_notifier
from app.core.session_scope import Scope
from app.db.session import get_db

from . import service
from .schemas import (
    ApplyBatchRequest,
    ApplyBatchResult,
    BatchStudentDetail,
    BatchSummary,
    OccasionalFeeTypeResponse,
    OccasionalFeeTypeSave,
)

router = APIRouter(prefix="/api/v1/occasional-fees", tags=["occasional-fees"])


# --- Batches ---
@router.post(
    "/batches",
    response_model=ApplyBatchResult,
    status_code=status.HTTP_201_CREATED,
)
async def apply_batch(
    payload: ApplyBatchRequest,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    current_user: CurrentUser = Depends(require_fee_manager),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ApplyBatchResult:
    try:
        return await service.apply_batch(db, scope, payload, current_user.display_name, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/batches",
    response_model=List[BatchSummary],
    dependencies=[Depends(require_fee_manager)],
)
async def batch_history(
    period_label: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[BatchSummary]:
    return await service.history(db, scope, period_label)


@router.get(
    "/batches/{batch_id}",
    response_model=List[BatchStudentDetail],
    dependencies=[Depends(require_fee_manager)],
)
async def batch_detail(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[BatchStudentDetail]:
    try:
        return await service.detail(db, scope, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee types ---
@router.get(
    "/types",
    response_model=List[OccasionalFeeTypeResponse],
    dependencies=[Depends(require_fee_manager)],
)
async def list_fee_types(
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[OccasionalFeeTypeResponse]:
    return await service.list_fee_types(db, scope)


@router.put(
    "/types",
    response_model=OccasionalFeeTypeResponse,
    dependencies=[Depends(require_fee_manager)],
)
async def save_fee_type(
    payload: OccasionalFeeTypeSave,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
) -> OccasionalFeeTypeResponse:
    try:
        return await service.save_fee_type(db, scope, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/types/{fee_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_fee_manager)],
)
async def delete_fee_type(
    fee_type_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
) -> None:
    try:
        await service.delete_fee_type(db, scope, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
