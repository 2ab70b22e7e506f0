"""Monthly due schemas. A due is either materialized (persisted, has an id) or virtual (computed on read)."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeStatus


class MaterializedDue(BaseModel):
    kind: Literal["materialized"] = "materialized"
    is_virtual: Literal[False] = False
    id: UUID
    student_id: UUID
    session_id: UUID
    period_label: str
    breakdown: Dict[str, Decimal]
    total_amount: Decimal
    status: FeeStatus
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    created_at: datetime


class VirtualDue(BaseModel):
    """Computed from the fee schedule and student attributes; not persisted."""

    kind: Literal["virtual"] = "virtual"
    is_virtual: Literal[True] = True
    student_id: UUID
    session_id: UUID
    period_label: str
    breakdown: Dict[str, Decimal]
    total_amount: Decimal
    status: FeeStatus = FeeStatus.unpaid


Due = Annotated[Union[MaterializedDue, VirtualDue], Field(discriminator="kind")]


class StudentDueView(BaseModel):
    """One row per student for section lists, search and defaulters; same shape for both due kinds."""

    student_id: UUID
    name: str
    class_name: str
    section: Optional[str] = None
    roll_no: Optional[str] = None
    transport_facility: bool
    period_label: str
    fee_id: Optional[UUID] = None
    is_virtual: bool
    status: FeeStatus
    breakdown: Dict[str, Decimal]
    total_amount: Decimal
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    collected_by: Optional[str] = None
