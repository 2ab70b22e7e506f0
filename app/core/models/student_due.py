"""Student due: materialized monthly obligation. Frozen once paid."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.core.enums import FeeStatus
from app.db.session import SCHOOL_SCHEMA, Base


class StudentDue(Base):
    """
    Persisted monthly due for one student, period and session.
    breakdown is stored as a list of {"name", "amount"} pairs so component order survives JSONB.
    breakdown, total_amount, status and payment_reference never change after status = 'paid'.
    """

    __tablename__ = "student_dues"
    __table_args__ = (
        UniqueConstraint("student_id", "period_label", "session_id", name="uq_student_due_student_period_session"),
        UniqueConstraint("tenant_id", "payment_reference", name="uq_student_due_payment_reference"),
        CheckConstraint("status IN ('unpaid','paid')", name="chk_student_due_status"),
        {"schema": SCHOOL_SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("core.academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_id = Column(UUID(as_uuid=True), ForeignKey("school.students.id", ondelete="RESTRICT"), nullable=False)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("school.fee_schedules.id", ondelete="SET NULL"), nullable=True)
    period_label = Column(String(50), nullable=False)
    breakdown = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.unpaid.value)
    payment_reference = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # Free text: receipts must still render after the collecting staff member is deleted
    collected_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    schedule = relationship("FeeSchedule")
