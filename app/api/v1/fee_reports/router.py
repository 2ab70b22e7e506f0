"""Fee reports router: class-wise collection, defaulters and student history."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, get_read_scope
from app.auth.rbac import ensure_self_or_fee_manager, require_fee_manager
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.session_scope import Scope
from app.db.session import get_db

from . import service
from .schemas import ClassCollectionSummary, DefaulterEntry, StudentFeeHistory

router = APIRouter(prefix="/api/v1/fee-reports", tags=["fee-reports"])


@router.get(
    "/tracking",
    response_model=List[ClassCollectionSummary],
    dependencies=[Depends(require_fee_manager)],
)
async def collection_tracking(
    period_label: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[ClassCollectionSummary]:
    return await service.tracking(db, scope, period_label)


@router.get(
    "/defaulters",
    response_model=List[DefaulterEntry],
    dependencies=[Depends(require_fee_manager)],
)
async def list_defaulters(
    period_label: str = Query(..., min_length=1),
    class_name: Optional[str] = Query(None, description='Class label, or "ALL"'),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[DefaulterEntry]:
    return await service.defaulters(db, scope, period_label, class_filter=class_name)


@router.get("/students/{student_id}/history", response_model=StudentFeeHistory)
async def student_history(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeHistory:
    ensure_self_or_fee_manager(current_user, student_id)
    try:
        return await service.student_history(db, scope, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
