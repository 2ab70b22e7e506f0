"""Fee report schemas: collection tracking, defaulters and per-student history."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import FeeStatus, FeeType


class ClassCollectionSummary(BaseModel):
    class_name: str
    total_students: int
    paid_count: int
    total_expected: Decimal
    total_collected: Decimal


class OccasionalLine(BaseModel):
    charge_id: UUID
    batch_id: str
    fee_name: str
    amount: Decimal


class DefaulterEntry(BaseModel):
    """A student owing something in the period: monthly due, occasional charges, or both."""

    student_id: UUID
    name: str
    class_name: str
    section: Optional[str] = None
    roll_no: Optional[str] = None
    period_label: str
    fee_id: Optional[UUID] = None
    is_virtual: bool = False
    monthly_breakdown: Dict[str, Decimal]
    monthly_due: Decimal
    occasional_breakdown: List[OccasionalLine]
    occasional_due: Decimal
    total_outstanding: Decimal


class HistoryEntry(BaseModel):
    fee_type: FeeType
    id: Optional[UUID] = None
    batch_id: Optional[str] = None
    period_label: str
    title: str
    breakdown: Dict[str, Decimal]
    total_amount: Decimal
    status: FeeStatus
    is_virtual: bool = False
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    created_at: Optional[datetime] = None


class StudentFeeHistory(BaseModel):
    student_id: Optional[UUID] = None
    session_id: UUID
    history: List[HistoryEntry]
    total_arrears: Decimal
