"""
Settlement reconciler: moves a due or occasional charge from unpaid to paid, once.

Two channels: gateway confirmations (HMAC-verified) and counter collection by staff. Every path
locks or conditionally updates "WHERE status = 'unpaid'" inside one transaction, so of two
concurrent attempts exactly one succeeds and the other gets AlreadySettledError. Notifications and
receipts go out after commit and never undo a settlement.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dues.service import fetch_materialized_dues
from app.api.v1.fee_schedules.store import fetch_schedule, to_schedule_rates
from app.core.enums import FeeStatus, FeeType, NotificationEvent
from app.core.exceptions import (
    AlreadySettledError,
    ConflictError,
    ForeignLedgerError,
    InputValidationError,
    InvalidSignatureError,
    ReferenceNotFoundError,
)
from app.core.fee_audit import log_fee_audit
from app.core.fee_calculator import ZERO, breakdown_from_json, breakdown_to_json, compute_virtual, to_decimal
from app.core.models import OccasionalCharge, StudentDue
from app.core.notifications import NotificationDispatcher, notify_safely, staff_of, student
from app.core.payment_gateway import verify_signature
from app.core.references import new_counter_reference
from app.core.roster import RosterEntry, get_roster_entry
from app.core.session_scope import Scope

from .schemas import (
    BatchSettleRequest,
    ChargeSettleRequest,
    GatewaySettleRequest,
    ManualDueSettleRequest,
    SettledRecord,
    SettlementResult,
)

logger = logging.getLogger(__name__)

ONLINE_COLLECTOR = "Online Payment"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _paid_values(reference: str, collected_by: str, paid_at: datetime) -> dict:
    return {
        "status": FeeStatus.paid.value,
        "payment_reference": reference,
        "paid_at": paid_at,
        "collected_by": collected_by,
    }


async def _student_in_scope(db: AsyncSession, scope: Scope, student_id: UUID) -> RosterEntry:
    entry = await get_roster_entry(db, scope, student_id)
    if not entry:
        raise ReferenceNotFoundError("Student not found in this academic session")
    return entry


# --- Gateway references ---
async def _ensure_reference_unused(db: AsyncSession, scope: Scope, reference: str) -> None:
    """A gateway transaction pays for exactly one settlement in the tenant."""
    for model in (StudentDue, OccasionalCharge):
        result = await db.execute(
            select(model.id)
            .where(model.tenant_id == scope.tenant_id, model.payment_reference == reference)
            .limit(1)
        )
        if result.first():
            logger.warning(
                "Rejected gateway settlement: transaction %s already credited (tenant %s)",
                reference,
                scope.tenant_id,
            )
            raise AlreadySettledError("This payment has already been applied")


# --- Monthly dues ---
async def _settle_due_row(
    db: AsyncSession,
    scope: Scope,
    due_id: UUID,
    reference: str,
    collected_by: str,
    paid_at: datetime,
) -> StudentDue:
    result = await db.execute(
        select(StudentDue)
        .where(
            StudentDue.id == due_id,
            StudentDue.tenant_id == scope.tenant_id,
            StudentDue.session_id == scope.session_id,
        )
        .with_for_update()
    )
    due = result.scalar_one_or_none()
    if not due:
        raise ReferenceNotFoundError("Fee record not found")
    if due.status == FeeStatus.paid.value:
        raise AlreadySettledError()
    if to_decimal(due.total_amount) <= ZERO:
        raise InputValidationError(f"Nothing is due for {due.period_label}")
    updated = await db.execute(
        update(StudentDue)
        .where(StudentDue.id == due_id, StudentDue.status == FeeStatus.unpaid.value)
        .values(**_paid_values(reference, collected_by, paid_at))
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        raise AlreadySettledError()
    await db.refresh(due)
    return due


async def _materialize_paid(
    db: AsyncSession,
    scope: Scope,
    entry: RosterEntry,
    period_label: str,
    reference: str,
    collected_by: str,
    paid_at: datetime,
) -> StudentDue:
    """Persist a virtual due directly as paid, with the breakdown computed now."""
    schedule = await fetch_schedule(db, scope, period_label)
    if not schedule:
        raise InputValidationError(f"No fee schedule configured for {period_label}")
    rates = to_schedule_rates(schedule)
    if not rates.has_class(entry.class_name):
        raise InputValidationError(f"No fee configured for class {entry.class_name} in {period_label}")
    breakdown, total = compute_virtual(rates, entry)
    if total <= ZERO:
        raise InputValidationError(f"Nothing is due for {period_label}")
    due = StudentDue(
        tenant_id=scope.tenant_id,
        session_id=scope.session_id,
        student_id=entry.student_id,
        schedule_id=schedule.id,
        period_label=period_label,
        breakdown=breakdown_to_json(breakdown),
        total_amount=total,
        **_paid_values(reference, collected_by, paid_at),
    )
    db.add(due)
    await db.flush()
    return due


async def _settle_monthly(
    db: AsyncSession,
    scope: Scope,
    due_id: Optional[UUID],
    student_id: Optional[UUID],
    period_label: Optional[str],
    reference: str,
    collected_by: str,
    paid_at: datetime,
) -> StudentDue:
    if due_id is not None:
        return await _settle_due_row(db, scope, due_id, reference, collected_by, paid_at)
    if student_id is None or not (period_label or "").strip():
        raise InputValidationError("Provide due_id, or student_id and period_label")
    period_label = period_label.strip()
    entry = await _student_in_scope(db, scope, student_id)
    existing = await fetch_materialized_dues(db, scope, period_label, [student_id])
    if existing:
        return await _settle_due_row(db, scope, existing[0].id, reference, collected_by, paid_at)
    try:
        return await _materialize_paid(db, scope, entry, period_label, reference, collected_by, paid_at)
    except IntegrityError:
        # Someone materialized the same due meanwhile: settle through the persisted row instead.
        await db.rollback()
        logger.warning(
            "Concurrent materialization of %s for student %s; retrying as materialized",
            period_label,
            student_id,
        )
        existing = await fetch_materialized_dues(db, scope, period_label, [student_id])
        if not existing:
            raise ConflictError("Fee record changed concurrently; retry")
        return await _settle_due_row(db, scope, existing[0].id, reference, collected_by, paid_at)


def _due_result(due: StudentDue, reference: str, collected_by: str, paid_at: datetime) -> SettlementResult:
    total = to_decimal(due.total_amount)
    return SettlementResult(
        fee_type=FeeType.MONTHLY,
        student_id=due.student_id,
        payment_reference=reference,
        paid_at=paid_at,
        collected_by=collected_by,
        records=[SettledRecord(id=due.id, label=due.period_label, amount=total)],
        breakdown=breakdown_from_json(due.breakdown),
        total_amount=total,
    )


# --- Occasional charges ---
async def _settle_batch_rows(
    db: AsyncSession,
    scope: Scope,
    batch_id: str,
    student_id: UUID,
    reference: str,
    collected_by: str,
    paid_at: datetime,
) -> List[OccasionalCharge]:
    """Settle every currently unpaid line of (batch, student). Already paid lines are left alone."""
    result = await db.execute(
        select(OccasionalCharge)
        .where(
            OccasionalCharge.tenant_id == scope.tenant_id,
            OccasionalCharge.session_id == scope.session_id,
            OccasionalCharge.batch_id == batch_id,
            OccasionalCharge.student_id == student_id,
        )
        .order_by(OccasionalCharge.created_at, OccasionalCharge.fee_name)
        .with_for_update()
    )
    lines = list(result.scalars().all())
    if not lines:
        raise ReferenceNotFoundError("No charges of this batch for the student")
    unpaid = [line for line in lines if line.status == FeeStatus.unpaid.value]
    if not unpaid:
        raise AlreadySettledError()
    updated = await db.execute(
        update(OccasionalCharge)
        .where(
            OccasionalCharge.id.in_([line.id for line in unpaid]),
            OccasionalCharge.status == FeeStatus.unpaid.value,
        )
        .values(**_paid_values(reference, collected_by, paid_at))
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != len(unpaid):
        raise AlreadySettledError()
    for line in unpaid:
        await db.refresh(line)
    return unpaid


async def _charge_in_scope(db: AsyncSession, scope: Scope, charge_id: UUID) -> OccasionalCharge:
    charge = await db.get(OccasionalCharge, charge_id)
    if not charge or charge.tenant_id != scope.tenant_id or charge.session_id != scope.session_id:
        raise ReferenceNotFoundError("Fee record not found")
    return charge


def _charges_result(
    student_id: UUID,
    lines: List[OccasionalCharge],
    reference: str,
    collected_by: str,
    paid_at: datetime,
) -> SettlementResult:
    records = [SettledRecord(id=line.id, label=line.fee_name, amount=to_decimal(line.amount)) for line in lines]
    return SettlementResult(
        fee_type=FeeType.OCCASIONAL,
        student_id=student_id,
        payment_reference=reference,
        paid_at=paid_at,
        collected_by=collected_by,
        records=records,
        breakdown={r.label: r.amount for r in records},
        total_amount=sum((r.amount for r in records), ZERO),
    )


# --- Side effects ---
async def _audit(db: AsyncSession, scope: Scope, result: SettlementResult, channel: str) -> None:
    table = "student_dues" if result.fee_type == FeeType.MONTHLY else "occasional_charges"
    for record in result.records:
        await log_fee_audit(
            db, scope.tenant_id, table, record.id,
            "SETTLE",
            {"status": FeeStatus.unpaid.value},
            {
                "status": FeeStatus.paid.value,
                "payment_reference": result.payment_reference,
                "amount": str(record.amount),
                "channel": channel,
            },
            result.collected_by,
        )


async def _announce(
    notifier: Optional[NotificationDispatcher],
    scope: Scope,
    entry: Optional[RosterEntry],
    result: SettlementResult,
) -> None:
    """Staff status update per settled record, then one receipt covering this call's records."""
    if notifier is None:
        return
    for record in result.records:
        await notify_safely(
            notifier,
            staff_of(scope.tenant_id),
            NotificationEvent.FEE_PAYMENT_UPDATE,
            {
                "fee_type": result.fee_type.value,
                "record_id": str(record.id),
                "student_id": str(result.student_id),
                "label": record.label,
                "amount": str(record.amount),
                "status": FeeStatus.paid.value,
                "payment_reference": result.payment_reference,
            },
        )
    if entry is None or not entry.email:
        return
    await notify_safely(
        notifier,
        student(result.student_id),
        NotificationEvent.SETTLEMENT_RECEIPT,
        {
            "email": entry.email,
            "name": entry.full_name,
            "class_name": entry.class_name,
            "section": entry.section,
            "roll_no": entry.roll_no,
            "fee_type": result.fee_type.value,
            "payment_reference": result.payment_reference,
            "paid_at": result.paid_at.isoformat(),
            "collected_by": result.collected_by,
            "breakdown": {name: str(amount) for name, amount in result.breakdown.items()},
            "total_amount": str(result.total_amount),
        },
    )


def _log_settled(scope: Scope, result: SettlementResult, channel: str) -> None:
    logger.info(
        "Settled %s %s for student %s (tenant %s session %s) via %s: %d records, %s, ref %s by %s",
        result.fee_type.value,
        ", ".join(r.label for r in result.records),
        result.student_id,
        scope.tenant_id,
        scope.session_id,
        channel,
        len(result.records),
        result.total_amount,
        result.payment_reference,
        result.collected_by,
    )


# --- Public operations ---
async def settle_by_gateway(
    db: AsyncSession,
    scope: Scope,
    payload: GatewaySettleRequest,
    notifier: Optional[NotificationDispatcher] = None,
    payer_id: Optional[UUID] = None,
) -> SettlementResult:
    """
    Apply a verified gateway transaction to one due or one (batch, student).

    payer_id, when given, is the student paying for themselves: the settled records must be theirs.
    A transaction reference is credited once per tenant.
    """
    if not verify_signature(payload.order_ref, payload.transaction_ref, payload.signature):
        logger.warning(
            "Rejected gateway settlement: bad signature (tenant %s, order %s, transaction %s, fee_type %s)",
            scope.tenant_id,
            payload.order_ref,
            payload.transaction_ref,
            payload.fee_type.value,
        )
        raise InvalidSignatureError()

    reference = payload.transaction_ref.strip()
    paid_at = _now()
    try:
        await _ensure_reference_unused(db, scope, reference)
        if payload.fee_type == FeeType.MONTHLY:
            due = await _settle_monthly(
                db, scope, payload.due_id, payload.student_id, payload.period_label,
                reference, ONLINE_COLLECTOR, paid_at,
            )
            result = _due_result(due, reference, ONLINE_COLLECTOR, paid_at)
        else:
            batch_id, student_id = payload.batch_id, payload.student_id
            if payload.charge_id is not None:
                charge = await _charge_in_scope(db, scope, payload.charge_id)
                batch_id, student_id = charge.batch_id, charge.student_id
            if not batch_id or student_id is None:
                raise InputValidationError("Provide charge_id, or batch_id and student_id")
            lines = await _settle_batch_rows(db, scope, batch_id, student_id, reference, ONLINE_COLLECTOR, paid_at)
            result = _charges_result(student_id, lines, reference, ONLINE_COLLECTOR, paid_at)
        if payer_id is not None and result.student_id != payer_id:
            raise ForeignLedgerError()
        entry = await get_roster_entry(db, scope, result.student_id)
        await _audit(db, scope, result, "gateway")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Gateway transaction %s raced another settlement (tenant %s)", reference, scope.tenant_id)
        raise AlreadySettledError("This payment has already been applied")
    except Exception:
        await db.rollback()
        raise

    _log_settled(scope, result, "gateway")
    await _announce(notifier, scope, entry, result)
    return result


async def settle_due_manually(
    db: AsyncSession,
    scope: Scope,
    payload: ManualDueSettleRequest,
    notifier: Optional[NotificationDispatcher] = None,
) -> SettlementResult:
    """Counter collection of a monthly due, materialized or still virtual."""
    collected_by = payload.collected_by.strip()
    if not collected_by:
        raise InputValidationError("collected_by is required")
    reference = new_counter_reference()
    paid_at = _now()
    try:
        due = await _settle_monthly(
            db, scope, payload.due_id, payload.student_id, payload.period_label,
            reference, collected_by, paid_at,
        )
        result = _due_result(due, reference, collected_by, paid_at)
        entry = await get_roster_entry(db, scope, result.student_id)
        await _audit(db, scope, result, "counter")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    _log_settled(scope, result, "counter")
    await _announce(notifier, scope, entry, result)
    return result


async def settle_batch_for_student(
    db: AsyncSession,
    scope: Scope,
    payload: BatchSettleRequest,
    notifier: Optional[NotificationDispatcher] = None,
) -> SettlementResult:
    """Counter collection of every unpaid line of one batch for one student."""
    collected_by = payload.collected_by.strip()
    if not collected_by:
        raise InputValidationError("collected_by is required")
    reference = new_counter_reference()
    paid_at = _now()
    try:
        lines = await _settle_batch_rows(
            db, scope, payload.batch_id.strip(), payload.student_id, reference, collected_by, paid_at,
        )
        result = _charges_result(payload.student_id, lines, reference, collected_by, paid_at)
        entry = await get_roster_entry(db, scope, payload.student_id)
        await _audit(db, scope, result, "counter")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    _log_settled(scope, result, "counter")
    await _announce(notifier, scope, entry, result)
    return result


async def settle_charge(
    db: AsyncSession,
    scope: Scope,
    charge_id: UUID,
    payload: ChargeSettleRequest,
    notifier: Optional[NotificationDispatcher] = None,
) -> SettlementResult:
    """Counter collection of a single occasional line item."""
    collected_by = payload.collected_by.strip()
    if not collected_by:
        raise InputValidationError("collected_by is required")
    reference = new_counter_reference()
    paid_at = _now()
    try:
        result_rows = await db.execute(
            select(OccasionalCharge)
            .where(
                OccasionalCharge.id == charge_id,
                OccasionalCharge.tenant_id == scope.tenant_id,
                OccasionalCharge.session_id == scope.session_id,
            )
            .with_for_update()
        )
        charge = result_rows.scalar_one_or_none()
        if not charge:
            raise ReferenceNotFoundError("Fee record not found")
        if charge.status == FeeStatus.paid.value:
            raise AlreadySettledError()
        updated = await db.execute(
            update(OccasionalCharge)
            .where(OccasionalCharge.id == charge_id, OccasionalCharge.status == FeeStatus.unpaid.value)
            .values(**_paid_values(reference, collected_by, paid_at))
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise AlreadySettledError()
        await db.refresh(charge)
        result = _charges_result(charge.student_id, [charge], reference, collected_by, paid_at)
        entry = await get_roster_entry(db, scope, charge.student_id)
        await _audit(db, scope, result, "counter")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    _log_settled(scope, result, "counter")
    await _announce(notifier, scope, entry, result)
    return result
