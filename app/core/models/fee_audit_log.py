"""Fee audit log: immutable trail of publishes, batch applies and settlements."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.session import SCHOOL_SCHEMA, Base


class FeeAuditLog(Base):
    """
    Immutable audit trail for fee ledger changes. Not session-scoped: survives session deletion.
    changed_by is free text (staff name or user id) so the trail outlives deleted users.
    """

    __tablename__ = "fee_audit_logs"
    __table_args__ = {"schema": SCHOOL_SCHEMA}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(String(64), nullable=False)  # row UUID, or batch_id for batch-level actions
    action_type = Column(String(30), nullable=False)  # PUBLISH, APPLY_BATCH, SETTLE
    old_value = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    new_value = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    changed_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
