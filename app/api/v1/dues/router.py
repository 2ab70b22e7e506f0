"""Dues router: one student's due for a period, section lists and counter search."""

from typing import List
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
from .schemas import Due, StudentDueView

router = APIRouter(prefix="/api/v1/dues", tags=["dues"])


@router.get("/student/{student_id}", response_model=Due)
async def get_student_due(
    student_id: UUID,
    period_label: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
    current_user: CurrentUser = Depends(get_current_user),
):
    ensure_self_or_fee_manager(current_user, student_id)
    try:
        return await service.read_due(db, scope, student_id, period_label)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/section/{class_name}/{section}",
    response_model=List[StudentDueView],
    dependencies=[Depends(require_fee_manager)],
)
async def list_section_dues(
    class_name: str,
    section: str,
    period_label: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[StudentDueView]:
    return await service.list_section_dues(db, scope, period_label, class_name=class_name, section=section)


@router.get(
    "/search",
    response_model=List[StudentDueView],
    dependencies=[Depends(require_fee_manager)],
)
async def search_student_dues(
    period_label: str = Query(..., min_length=1),
    q: str = Query("", description="Student name fragment"),
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_read_scope),
) -> List[StudentDueView]:
    return await service.search_student_dues(db, scope, period_label, q)
