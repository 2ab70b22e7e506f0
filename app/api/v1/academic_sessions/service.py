"""
Academic session lifecycle: create, rename, activate (session rotation) and delete.

Deleting a session removes every session-scoped row through SESSION_SCOPED_ENTITIES, in that
order (children before parents), then the session itself, in one transaction. Audit rows are kept.
"""

import logging
from typing import Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, InputValidationError, ReferenceNotFoundError
from app.core.models import (
    AcademicSession,
    FeeSchedule,
    OccasionalCharge,
    OccasionalFeeType,
    Student,
    StudentDue,
    Tenant,
)

from .schemas import (
    AcademicSessionCreate,
    AcademicSessionRename,
    AcademicSessionResponse,
    SessionDeletionResult,
)

logger = logging.getLogger(__name__)

# Every model carrying (tenant_id, session_id), in deletion order.
SESSION_SCOPED_ENTITIES: Tuple[Type, ...] = (
    OccasionalCharge,
    StudentDue,
    OccasionalFeeType,
    FeeSchedule,
    Student,
)


def _to_response(session: AcademicSession, current_session_id: Optional[UUID]) -> AcademicSessionResponse:
    return AcademicSessionResponse(
        id=session.id,
        tenant_id=session.tenant_id,
        name=session.name,
        is_active=session.is_active,
        is_current=session.id == current_session_id,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


async def _tenant(db: AsyncSession, tenant_id: UUID) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise ReferenceNotFoundError("Tenant not found")
    return tenant


async def _session_of(db: AsyncSession, tenant_id: UUID, session_id: UUID) -> AcademicSession:
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.id == session_id,
            AcademicSession.tenant_id == tenant_id,
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise ReferenceNotFoundError("Academic session not found")
    return session


async def _ensure_name_free(db: AsyncSession, tenant_id: UUID, name: str, exclude_id: Optional[UUID] = None) -> None:
    stmt = select(AcademicSession.id).where(
        AcademicSession.tenant_id == tenant_id,
        AcademicSession.name == name,
    )
    if exclude_id is not None:
        stmt = stmt.where(AcademicSession.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ConflictError(f"Academic session '{name}' already exists")


async def _make_current(db: AsyncSession, tenant: Tenant, session: AcademicSession) -> None:
    await db.execute(
        update(AcademicSession)
        .where(AcademicSession.tenant_id == tenant.id, AcademicSession.id != session.id)
        .values(is_active=False)
    )
    session.is_active = True
    tenant.current_session_id = session.id


async def create_session(
    db: AsyncSession,
    tenant_id: UUID,
    payload: AcademicSessionCreate,
) -> AcademicSessionResponse:
    """Create a session. The tenant's first session is always activated."""
    name = payload.name.strip()
    if not name:
        raise InputValidationError("Session name is required")
    tenant = await _tenant(db, tenant_id)
    await _ensure_name_free(db, tenant_id, name)
    session = AcademicSession(tenant_id=tenant_id, name=name, is_active=False)
    db.add(session)
    try:
        await db.flush()
        if payload.activate or tenant.current_session_id is None:
            await _make_current(db, tenant, session)
        await db.commit()
        await db.refresh(session)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Academic session '{name}' already exists")
    logger.info("Created academic session %s (%s) for tenant %s", session.id, name, tenant_id)
    return _to_response(session, tenant.current_session_id)


async def list_sessions(db: AsyncSession, tenant_id: UUID) -> List[AcademicSessionResponse]:
    tenant = await _tenant(db, tenant_id)
    result = await db.execute(
        select(AcademicSession)
        .where(AcademicSession.tenant_id == tenant_id)
        .order_by(AcademicSession.created_at.desc())
    )
    return [_to_response(s, tenant.current_session_id) for s in result.scalars().all()]


async def rename_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
    payload: AcademicSessionRename,
) -> AcademicSessionResponse:
    name = payload.name.strip()
    if not name:
        raise InputValidationError("Session name is required")
    tenant = await _tenant(db, tenant_id)
    session = await _session_of(db, tenant_id, session_id)
    await _ensure_name_free(db, tenant_id, name, exclude_id=session_id)
    session.name = name
    try:
        await db.commit()
        await db.refresh(session)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Academic session '{name}' already exists")
    return _to_response(session, tenant.current_session_id)


async def activate_session(db: AsyncSession, tenant_id: UUID, session_id: UUID) -> AcademicSessionResponse:
    """Rotate: deactivate every sibling, activate this one and move the tenant pointer, atomically."""
    tenant = await _tenant(db, tenant_id)
    session = await _session_of(db, tenant_id, session_id)
    previous = tenant.current_session_id
    try:
        await _make_current(db, tenant, session)
        await db.commit()
        await db.refresh(session)
    except Exception:
        await db.rollback()
        raise
    logger.info("Tenant %s rotated academic session %s -> %s", tenant_id, previous, session_id)
    return _to_response(session, tenant.current_session_id)


async def delete_session(db: AsyncSession, tenant_id: UUID, session_id: UUID) -> SessionDeletionResult:
    """Delete a non-current session and everything scoped to it."""
    tenant = await _tenant(db, tenant_id)
    session = await _session_of(db, tenant_id, session_id)
    if session.is_active or tenant.current_session_id == session_id:
        raise ConflictError("Cannot delete the active academic session; activate another session first")

    deleted: Dict[str, int] = {}
    try:
        for model in SESSION_SCOPED_ENTITIES:
            result = await db.execute(
                delete(model)
                .where(
                    model.tenant_id == tenant_id,
                    model.session_id == session_id,
                )
                .execution_options(synchronize_session=False)
            )
            deleted[model.__tablename__] = result.rowcount or 0
        await db.delete(session)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Deleted academic session %s of tenant %s: %s", session_id, tenant_id, deleted)
    return SessionDeletionResult(session_id=session_id, deleted=deleted)
