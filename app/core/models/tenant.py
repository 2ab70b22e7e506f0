import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import CORE_SCHEMA, Base


class Tenant(Base):
    """
    Tenant (school / institute) in the multi-tenant platform. Owns every other entity transitively.

    - current_session_id: session-rotation pointer. Deliberately not a FK; the session it points at
      may have been deleted, in which case the scope resolver falls back to the active session.
    """

    __tablename__ = "tenants"
    __table_args__ = {"schema": CORE_SCHEMA}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    current_session_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
