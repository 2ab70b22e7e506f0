import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import SCHOOL_SCHEMA, Base


class OccasionalFeeType(Base):
    """Named occasional fee preset (e.g. Library, Lab) with a default amount. Session-scoped."""

    __tablename__ = "occasional_fee_types"
    __table_args__ = (
        UniqueConstraint("tenant_id", "fee_name", "session_id", name="uq_occasional_fee_type_tenant_name_session"),
        {"schema": SCHOOL_SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("core.academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    fee_name = Column(String(100), nullable=False)
    default_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
