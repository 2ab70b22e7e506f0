"""Append-only fee audit entries. Caller owns the transaction and must commit."""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeAuditLog


async def log_fee_audit(
    db: AsyncSession,
    tenant_id: UUID,
    reference_table: str,
    reference_id: Any,
    action_type: str,
    old_value: Optional[Dict[str, Any]],
    new_value: Optional[Dict[str, Any]],
    changed_by: Optional[str],
) -> None:
    db.add(
        FeeAuditLog(
            tenant_id=tenant_id,
            reference_table=reference_table,
            reference_id=str(reference_id),
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by,
        )
    )
