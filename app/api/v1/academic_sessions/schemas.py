from datetime import datetime
from typing import Dict
from uuid import UUID

from pydantic import BaseModel, Field


class AcademicSessionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description='e.g. "2026-27"')
    activate: bool = Field(False, description="Make this the tenant's current session")


class AcademicSessionRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class AcademicSessionResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    is_active: bool
    is_current: bool = False
    created_at: datetime
    updated_at: datetime


class SessionDeletionResult(BaseModel):
    session_id: UUID
    deleted: Dict[str, int]
