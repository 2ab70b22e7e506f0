"""Settlement schemas: gateway confirmation, counter collection and the settlement result."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeType


class GatewaySettleRequest(BaseModel):
    """
    Gateway confirmation forwarded by the client after checkout.

    monthly: due_id, or student_id + period_label when the due is still virtual.
    occasional: batch_id + student_id, or charge_id (its batch and student are used).
    """

    order_ref: str = Field(..., min_length=1)
    transaction_ref: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    fee_type: FeeType
    due_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    period_label: Optional[str] = None
    batch_id: Optional[str] = None
    charge_id: Optional[UUID] = None


class ManualDueSettleRequest(BaseModel):
    due_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    period_label: Optional[str] = None
    collected_by: str = Field(..., min_length=1, max_length=255)


class BatchSettleRequest(BaseModel):
    batch_id: str = Field(..., min_length=1)
    student_id: UUID
    collected_by: str = Field(..., min_length=1, max_length=255)


class ChargeSettleRequest(BaseModel):
    collected_by: str = Field(..., min_length=1, max_length=255)


class SettledRecord(BaseModel):
    id: UUID
    label: str
    amount: Decimal


class SettlementResult(BaseModel):
    fee_type: FeeType
    student_id: UUID
    payment_reference: str
    paid_at: datetime
    collected_by: str
    records: List[SettledRecord]
    breakdown: Dict[str, Decimal]
    total_amount: Decimal
