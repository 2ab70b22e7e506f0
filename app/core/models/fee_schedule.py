"""Fee schedule: ordered fee components and per-class rates for one billing period."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.session import SCHOOL_SCHEMA, Base


class FeeSchedule(Base):
    """
    One per (tenant, period_label, session). components is the ordered list of component names;
    class_rates maps class label -> {component name: amount as string}.
    """

    __tablename__ = "fee_schedules"
    __table_args__ = (
        UniqueConstraint("tenant_id", "period_label", "session_id", name="uq_fee_schedule_tenant_period_session"),
        {"schema": SCHOOL_SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("core.academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_label = Column(String(50), nullable=False)  # e.g. "March 2026"
    components = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    class_rates = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    academic_session = relationship("AcademicSession")
