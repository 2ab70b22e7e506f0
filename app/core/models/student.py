"""Student roster row: one per student per academic session."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import SCHOOL_SCHEMA, Base


class Student(Base):
    """
    Enrolled student in one academic session. Promotion re-enrolls the same person as a new row in the
    next session; unique_code is the identity that survives across sessions.
    """

    __tablename__ = "students"
    __table_args__ = {"schema": SCHOOL_SCHEMA}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        UUID(as_uuid=True),
        ForeignKey("core.academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    unique_code = Column(String(50), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    class_name = Column(String(50), nullable=False)  # e.g. "5", "LKG"
    section = Column(String(20), nullable=True)
    roll_no = Column(String(20), nullable=True)
    # Opt-in flag gating transport components of the monthly fee
    transport_facility = Column(Boolean, nullable=False, default=False)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
