"""Fee schedule schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeSchedulePublish(BaseModel):
    """
    Publish (create or replace) the schedule for one period.

    class_rates: class label -> {component name: amount}. A component missing for a class is 0.
    """

    period_label: str = Field(..., min_length=1, max_length=50, description='e.g. "March 2026"')
    components: List[str] = Field(..., description="Ordered fee component names")
    class_rates: Dict[str, Dict[str, Decimal]]


class FeeScheduleResponse(BaseModel):
    id: Optional[UUID] = None
    session_id: UUID
    period_label: str
    components: List[str]
    class_rates: Dict[str, Dict[str, Decimal]]
    is_new: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublishResult(BaseModel):
    schedule: FeeScheduleResponse
    dues_written: int
    total_expected: Decimal
