from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_principal
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import (
    AcademicSessionCreate,
    AcademicSessionRename,
    AcademicSessionResponse,
    SessionDeletionResult,
)

router = APIRouter(prefix="/api/v1/academic-sessions", tags=["academic-sessions"])


@router.post(
    "",
    response_model=AcademicSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    payload: AcademicSessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_principal),
) -> AcademicSessionResponse:
    try:
        return await service.create_session(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AcademicSessionResponse])
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[AcademicSessionResponse]:
    try:
        return await service.list_sessions(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{session_id}", response_model=AcademicSessionResponse)
async def rename_session(
    session_id: UUID,
    payload: AcademicSessionRename,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_principal),
) -> AcademicSessionResponse:
    try:
        return await service.rename_session(db, current_user.tenant_id, session_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{session_id}/activate", response_model=AcademicSessionResponse)
async def activate_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_principal),
) -> AcademicSessionResponse:
    try:
        return await service.activate_session(db, current_user.tenant_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{session_id}", response_model=SessionDeletionResult)
async def delete_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_principal),
) -> SessionDeletionResult:
    try:
        return await service.delete_session(db, current_user.tenant_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
