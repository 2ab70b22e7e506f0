"""Occasional fee schemas: batch apply, batch history and detail, fee type presets."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeStatus


class ChargeLine(BaseModel):
    fee_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal


class ApplyBatchRequest(BaseModel):
    student_ids: List[UUID]
    period_label: str = Field(..., min_length=1, max_length=50)
    charges: List[ChargeLine]


class ApplyBatchResult(BaseModel):
    batch_id: str
    period_label: str
    students: int
    charges_created: int
    total_expected: Decimal


class OccasionalChargeResponse(BaseModel):
    id: UUID
    batch_id: str
    student_id: UUID
    period_label: str
    fee_name: str
    amount: Decimal
    status: FeeStatus
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BatchSummary(BaseModel):
    """One row per batch in the history list."""

    batch_id: str
    created_at: datetime
    total_students: int
    paid_students: int
    total_expected: Decimal
    total_collected: Decimal
    reasons: str
    collected_by: Optional[str] = None
    paid_at: Optional[datetime] = None


class BatchStudentDetail(BaseModel):
    student_id: UUID
    name: str
    roll_no: Optional[str] = None
    class_name: str
    section: Optional[str] = None
    total_amount: Decimal
    items: str
    amount_breakdown: Dict[str, Decimal]
    status: FeeStatus
    collected_by: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None


# --- Fee type presets ---
class OccasionalFeeTypeSave(BaseModel):
    fee_name: str = Field(..., min_length=1, max_length=100)
    default_amount: Decimal = Field(..., ge=0)


class OccasionalFeeTypeResponse(BaseModel):
    id: UUID
    session_id: UUID
    fee_name: str
    default_amount: Decimal
    created_at: datetime

    class Config:
        from_attributes = True
