"""
Session scope resolution.

Every fee ledger query is partitioned by (tenant_id, session_id). The pair is resolved once per
request and passed explicitly as a Scope into service functions; it is never kept in global state.

Resolution order:
1. explicit override (read-only "view a past session"): must belong to the tenant
2. tenant.current_session_id, if it still points at a session of the tenant
3. the tenant's is_active session (stale or missing pointer)
4. otherwise NoActiveSessionError
"""

import logging
from typing import NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForeignSessionError, NoActiveSessionError, ReferenceNotFoundError
from app.core.models import AcademicSession, Tenant

logger = logging.getLogger(__name__)


class Scope(NamedTuple):
    tenant_id: UUID
    session_id: UUID


async def _session_of_tenant(db: AsyncSession, tenant_id: UUID, session_id: UUID) -> Optional[AcademicSession]:
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.id == session_id,
            AcademicSession.tenant_id == tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def resolve_scope(
    db: AsyncSession,
    tenant_id: UUID,
    override: Optional[UUID] = None,
) -> Scope:
    if override is not None:
        if not await _session_of_tenant(db, tenant_id, override):
            logger.warning("Rejected session override %s for tenant %s", override, tenant_id)
            raise ForeignSessionError()
        return Scope(tenant_id, override)

    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise ReferenceNotFoundError("Tenant not found")

    if tenant.current_session_id is not None:
        if await _session_of_tenant(db, tenant_id, tenant.current_session_id):
            return Scope(tenant_id, tenant.current_session_id)
        logger.warning(
            "Tenant %s points at missing session %s; falling back to active session",
            tenant_id,
            tenant.current_session_id,
        )

    result = await db.execute(
        select(AcademicSession)
        .where(
            AcademicSession.tenant_id == tenant_id,
            AcademicSession.is_active.is_(True),
        )
        .order_by(AcademicSession.created_at.desc())
    )
    active = result.scalars().all()
    if not active:
        raise NoActiveSessionError()
    if len(active) > 1:
        logger.warning(
            "Tenant %s has %d active sessions; using most recent %s",
            tenant_id,
            len(active),
            active[0].id,
        )
    return Scope(tenant_id, active[0].id)
