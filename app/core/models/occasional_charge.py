"""Occasional charge: one named line item for one student, grouped by batch_id."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import FeeStatus
from app.db.session import SCHOOL_SCHEMA, Base


class OccasionalCharge(Base):
    """Ad hoc charge line item. A batch is fully settled only when every row sharing its batch_id is paid."""

    __tablename__ = "occasional_charges"
    __table_args__ = (
        UniqueConstraint("batch_id", "student_id", "fee_name", name="uq_occasional_charge_batch_student_fee"),
        CheckConstraint("status IN ('unpaid','paid')", name="chk_occasional_charge_status"),
        CheckConstraint("amount > 0", name="chk_occasional_charge_amount_positive"),
        {"schema": SCHOOL_SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("core.academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    batch_id = Column(String(64), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("school.students.id", ondelete="RESTRICT"), nullable=False)
    period_label = Column(String(50), nullable=False)
    fee_name = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.unpaid.value)
    payment_reference = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    collected_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
