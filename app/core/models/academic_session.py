import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import CORE_SCHEMA, Base


class AcademicSession(Base):
    """
    Academic session per tenant (e.g. "2025-26"). Every fee ledger row carries a session_id.
    Only one per tenant is is_active = true; activation flips siblings in the same transaction.
    """

    __tablename__ = "academic_sessions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_academic_session_tenant_name"),
        {"schema": CORE_SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", backref="academic_sessions")
