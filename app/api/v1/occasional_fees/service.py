"""
Occasional charge batcher: applies ad hoc named charges (exam, library, lab ...) to a set of
students as one batch, and summarizes batches for collection.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeeStatus, NotificationEvent
from app.core.exceptions import ConflictError, InputValidationError, ReferenceNotFoundError
from app.core.fee_audit import log_fee_audit
from app.core.fee_calculator import ZERO, to_decimal
from app.core.models import OccasionalCharge, OccasionalFeeType
from app.core.notifications import NotificationDispatcher, notify_safely, student
from app.core.references import new_batch_id
from app.core.roster import get_roster_entries
from app.core.session_scope import Scope

from .schemas import (
    ApplyBatchRequest,
    ApplyBatchResult,
    BatchStudentDetail,
    BatchSummary,
    ChargeLine,
    OccasionalFeeTypeResponse,
    OccasionalFeeTypeSave,
)

logger = logging.getLogger(__name__)


def _validate_charges(charges: List[ChargeLine]) -> List[ChargeLine]:
    """Trimmed charge lines with amount > 0, in request order."""
    if not charges:
        raise InputValidationError("At least one charge is required")
    seen = set()
    positive = []
    for line in charges:
        name = line.fee_name.strip()
        if not name:
            raise InputValidationError("Charge name cannot be empty")
        if name.lower() in seen:
            raise InputValidationError(f"Duplicate charge name: {name}")
        seen.add(name.lower())
        if line.amount < ZERO:
            raise InputValidationError(f"Amount for {name} cannot be negative")
        if line.amount > ZERO:
            positive.append(ChargeLine(fee_name=name, amount=line.amount))
    if not positive:
        raise InputValidationError("At least one charge must have an amount greater than 0")
    return positive


async def apply_batch(
    db: AsyncSession,
    scope: Scope,
    payload: ApplyBatchRequest,
    changed_by: Optional[str],
    notifier: Optional[NotificationDispatcher] = None,
) -> ApplyBatchResult:
    """Insert one unpaid charge per (student, positive charge line) under a fresh batch id."""
    student_ids = list(OrderedDict.fromkeys(payload.student_ids))
    if not student_ids:
        raise InputValidationError("At least one student is required")
    period_label = payload.period_label.strip()
    if not period_label:
        raise InputValidationError("period_label is required")
    lines = _validate_charges(payload.charges)

    roster = await get_roster_entries(db, scope, student_ids)
    found = {e.student_id for e in roster}
    missing = [str(sid) for sid in student_ids if sid not in found]
    if missing:
        raise ReferenceNotFoundError(f"Students not found in this academic session: {', '.join(missing)}")

    batch_id = new_batch_id()
    per_student_total = sum((line.amount for line in lines), ZERO)
    try:
        for sid in student_ids:
            for line in lines:
                db.add(
                    OccasionalCharge(
                        tenant_id=scope.tenant_id,
                        session_id=scope.session_id,
                        batch_id=batch_id,
                        student_id=sid,
                        period_label=period_label,
                        fee_name=line.fee_name,
                        amount=line.amount,
                        status=FeeStatus.unpaid.value,
                    )
                )
        await db.flush()
        await log_fee_audit(
            db, scope.tenant_id, "occasional_charges", batch_id,
            "APPLY_BATCH",
            None,
            {
                "period_label": period_label,
                "students": [str(sid) for sid in student_ids],
                "charges": [{"fee_name": line.fee_name, "amount": str(line.amount)} for line in lines],
            },
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Batch could not be applied; retry")
    except Exception:
        await db.rollback()
        raise

    total_expected = per_student_total * len(student_ids)
    logger.info(
        "Applied batch %s (%s) for tenant %s session %s by %s: %d students x %d charges, expected %s",
        batch_id,
        period_label,
        scope.tenant_id,
        scope.session_id,
        changed_by,
        len(student_ids),
        len(lines),
        total_expected,
    )

    if notifier is not None:
        reasons = ", ".join(line.fee_name for line in lines)
        for sid in student_ids:
            await notify_safely(
                notifier,
                student(sid),
                NotificationEvent.NEW_FEE,
                {
                    "batch_id": batch_id,
                    "period_label": period_label,
                    "fee_names": reasons,
                    "amount": str(per_student_total),
                },
            )

    return ApplyBatchResult(
        batch_id=batch_id,
        period_label=period_label,
        students=len(student_ids),
        charges_created=len(student_ids) * len(lines),
        total_expected=total_expected,
    )


async def fetch_charges(
    db: AsyncSession,
    scope: Scope,
    period_label: Optional[str] = None,
    batch_id: Optional[str] = None,
    student_ids: Optional[List[UUID]] = None,
    status: Optional[FeeStatus] = None,
) -> List[OccasionalCharge]:
    stmt = select(OccasionalCharge).where(
        OccasionalCharge.tenant_id == scope.tenant_id,
        OccasionalCharge.session_id == scope.session_id,
    )
    if period_label is not None:
        stmt = stmt.where(OccasionalCharge.period_label == period_label)
    if batch_id is not None:
        stmt = stmt.where(OccasionalCharge.batch_id == batch_id)
    if student_ids is not None:
        stmt = stmt.where(OccasionalCharge.student_id.in_(student_ids))
    if status is not None:
        stmt = stmt.where(OccasionalCharge.status == status.value)
    result = await db.execute(stmt.order_by(OccasionalCharge.created_at, OccasionalCharge.fee_name))
    return list(result.scalars().all())


def _latest(values):
    present = [v for v in values if v is not None]
    return max(present) if present else None


async def history(db: AsyncSession, scope: Scope, period_label: str) -> List[BatchSummary]:
    """One summary per batch applied in the period, newest first."""
    groups: Dict[str, List[OccasionalCharge]] = OrderedDict()
    for row in await fetch_charges(db, scope, period_label=period_label):
        groups.setdefault(row.batch_id, []).append(row)

    summaries = []
    for batch_id, rows in groups.items():
        paid_rows = [r for r in rows if r.status == FeeStatus.paid.value]
        owing = {r.student_id for r in rows if r.status == FeeStatus.unpaid.value}
        students = {r.student_id for r in rows}
        fee_names = sorted({r.fee_name for r in rows})
        summaries.append(
            BatchSummary(
                batch_id=batch_id,
                created_at=max(r.created_at for r in rows),
                total_students=len(students),
                paid_students=len(students - owing),
                total_expected=sum((to_decimal(r.amount) for r in rows), ZERO),
                total_collected=sum((to_decimal(r.amount) for r in paid_rows), ZERO),
                reasons=", ".join(fee_names),
                collected_by=_latest(r.collected_by for r in rows),
                paid_at=_latest(r.paid_at for r in rows),
            )
        )
    summaries.sort(key=lambda s: s.created_at, reverse=True)
    return summaries


async def detail(db: AsyncSession, scope: Scope, batch_id: str) -> List[BatchStudentDetail]:
    """One row per student of the batch. A student is paid only when every line is paid."""
    rows = await fetch_charges(db, scope, batch_id=batch_id)
    if not rows:
        raise ReferenceNotFoundError("Batch not found")
    by_student: Dict[UUID, List[OccasionalCharge]] = OrderedDict()
    for row in rows:
        by_student.setdefault(row.student_id, []).append(row)
    roster = {e.student_id: e for e in await get_roster_entries(db, scope, list(by_student))}

    details = []
    for sid, lines in by_student.items():
        entry = roster.get(sid)
        if entry is None:
            continue
        unpaid = any(line.status == FeeStatus.unpaid.value for line in lines)
        details.append(
            BatchStudentDetail(
                student_id=sid,
                name=entry.full_name,
                roll_no=entry.roll_no,
                class_name=entry.class_name,
                section=entry.section,
                total_amount=sum((to_decimal(line.amount) for line in lines), ZERO),
                items=" + ".join(line.fee_name for line in lines),
                amount_breakdown={line.fee_name: to_decimal(line.amount) for line in lines},
                status=FeeStatus.unpaid if unpaid else FeeStatus.paid,
                collected_by=_latest(line.collected_by for line in lines),
                paid_at=_latest(line.paid_at for line in lines),
                payment_reference=_latest(line.payment_reference for line in lines),
            )
        )
    details.sort(key=lambda d: (d.class_name, d.section or "", d.roll_no or "", d.name))
    return details


# --- Fee type presets ---
async def list_fee_types(db: AsyncSession, scope: Scope) -> List[OccasionalFeeTypeResponse]:
    result = await db.execute(
        select(OccasionalFeeType)
        .where(
            OccasionalFeeType.tenant_id == scope.tenant_id,
            OccasionalFeeType.session_id == scope.session_id,
        )
        .order_by(OccasionalFeeType.fee_name)
    )
    return [OccasionalFeeTypeResponse.model_validate(t) for t in result.scalars().all()]


async def save_fee_type(db: AsyncSession, scope: Scope, payload: OccasionalFeeTypeSave) -> OccasionalFeeTypeResponse:
    """Create the preset or update its default amount (keyed by name)."""
    fee_name = payload.fee_name.strip()
    if not fee_name:
        raise InputValidationError("fee_name is required")
    result = await db.execute(
        select(OccasionalFeeType).where(
            OccasionalFeeType.tenant_id == scope.tenant_id,
            OccasionalFeeType.session_id == scope.session_id,
            OccasionalFeeType.fee_name == fee_name,
        )
    )
    fee_type = result.scalar_one_or_none()
    try:
        if fee_type:
            fee_type.default_amount = payload.default_amount
        else:
            fee_type = OccasionalFeeType(
                tenant_id=scope.tenant_id,
                session_id=scope.session_id,
                fee_name=fee_name,
                default_amount=payload.default_amount,
            )
            db.add(fee_type)
        await db.commit()
        await db.refresh(fee_type)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Fee type {fee_name} was saved concurrently; retry")
    return OccasionalFeeTypeResponse.model_validate(fee_type)


async def delete_fee_type(db: AsyncSession, scope: Scope, fee_type_id: UUID) -> None:
    fee_type = await db.get(OccasionalFeeType, fee_type_id)
    if not fee_type or fee_type.tenant_id != scope.tenant_id or fee_type.session_id != scope.session_id:
        raise ReferenceNotFoundError("Fee type not found")
    await db.delete(fee_type)
    await db.commit()
