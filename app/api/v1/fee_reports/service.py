"""
Collection and defaulter reporting. Read-only; merges materialized and virtual dues so a student
never appears to owe nothing just because the period has not been published yet.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dues.service import fetch_materialized_dues, list_section_dues, virtual_due
from app.api.v1.fee_schedules.store import fetch_schedule, fetch_schedules, to_schedule_rates
from app.api.v1.occasional_fees.service import fetch_charges
from app.core.enums import FeeStatus, FeeType
from app.core.exceptions import ReferenceNotFoundError
from app.core.fee_calculator import ZERO, breakdown_from_json, to_decimal
from app.core.models import OccasionalCharge, Student
from app.core.roster import load_roster, to_roster_entry
from app.core.session_scope import Scope

from .schemas import (
    ClassCollectionSummary,
    DefaulterEntry,
    HistoryEntry,
    OccasionalLine,
    StudentFeeHistory,
)


async def tracking(db: AsyncSession, scope: Scope, period_label: str) -> List[ClassCollectionSummary]:
    """Per class: students, paid count, expected (materialized + virtual), collected (paid rows only)."""
    roster = await load_roster(db, scope)
    rows = {r.student_id: r for r in await fetch_materialized_dues(db, scope, period_label)}
    schedule = await fetch_schedule(db, scope, period_label)
    rates = to_schedule_rates(schedule) if schedule else None

    summaries: Dict[str, Dict] = OrderedDict()
    for entry in sorted(roster, key=lambda e: e.class_name):
        s = summaries.setdefault(
            entry.class_name,
            {"total_students": 0, "paid_count": 0, "total_expected": ZERO, "total_collected": ZERO},
        )
        s["total_students"] += 1
        row = rows.get(entry.student_id)
        if row:
            amount = to_decimal(row.total_amount)
            s["total_expected"] += amount
            if row.status == FeeStatus.paid.value:
                s["paid_count"] += 1
                s["total_collected"] += amount
        else:
            s["total_expected"] += virtual_due(scope, entry, period_label, rates).total_amount
    return [ClassCollectionSummary(class_name=name, **values) for name, values in summaries.items()]


async def defaulters(
    db: AsyncSession,
    scope: Scope,
    period_label: str,
    class_filter: Optional[str] = None,
) -> List[DefaulterEntry]:
    """Students with an unpaid monthly due and/or unpaid occasional charges in the period."""
    views = await list_section_dues(db, scope, period_label, class_name=class_filter or "ALL", section="ALL")
    if not views:
        return []
    unpaid_charges = await fetch_charges(
        db, scope,
        period_label=period_label,
        student_ids=[v.student_id for v in views],
        status=FeeStatus.unpaid,
    )
    charges_by_student: Dict[UUID, List[OccasionalCharge]] = {}
    for charge in unpaid_charges:
        charges_by_student.setdefault(charge.student_id, []).append(charge)

    entries = []
    for view in views:
        owes_monthly = view.status == FeeStatus.unpaid and view.total_amount > ZERO
        lines = [
            OccasionalLine(
                charge_id=c.id,
                batch_id=c.batch_id,
                fee_name=c.fee_name,
                amount=to_decimal(c.amount),
            )
            for c in charges_by_student.get(view.student_id, [])
        ]
        if not owes_monthly and not lines:
            continue
        monthly_due = view.total_amount if owes_monthly else ZERO
        occasional_due = sum((line.amount for line in lines), ZERO)
        entries.append(
            DefaulterEntry(
                student_id=view.student_id,
                name=view.name,
                class_name=view.class_name,
                section=view.section,
                roll_no=view.roll_no,
                period_label=period_label,
                fee_id=view.fee_id if owes_monthly else None,
                is_virtual=view.is_virtual if owes_monthly else False,
                monthly_breakdown=view.breakdown if owes_monthly else {},
                monthly_due=monthly_due,
                occasional_breakdown=lines,
                occasional_due=occasional_due,
                total_outstanding=monthly_due + occasional_due,
            )
        )
    return entries


def _occasional_groups(charges: List[OccasionalCharge]) -> List[HistoryEntry]:
    groups: Dict[Tuple[str, str, str], List[OccasionalCharge]] = OrderedDict()
    for charge in charges:
        groups.setdefault((charge.batch_id, charge.status, charge.period_label), []).append(charge)
    entries = []
    for (batch_id, status, period_label), lines in groups.items():
        breakdown = {line.fee_name: to_decimal(line.amount) for line in lines}
        paid_at = [line.paid_at for line in lines if line.paid_at is not None]
        references = [line.payment_reference for line in lines if line.payment_reference]
        collectors = [line.collected_by for line in lines if line.collected_by]
        entries.append(
            HistoryEntry(
                fee_type=FeeType.OCCASIONAL,
                batch_id=batch_id,
                period_label=period_label,
                title=" + ".join(sorted(breakdown)),
                breakdown=breakdown,
                total_amount=sum(breakdown.values(), ZERO),
                status=status,
                payment_reference=max(references) if references else None,
                paid_at=max(paid_at) if paid_at else None,
                collected_by=max(collectors) if collectors else None,
                created_at=max(line.created_at for line in lines),
            )
        )
    return entries


async def student_history(db: AsyncSession, scope: Scope, student_id: UUID) -> StudentFeeHistory:
    """
    Full ledger of one person in the scope's session, newest first.

    student_id may be the person's row in any session of the tenant; the row for the scope's
    session is found through unique_code. total_arrears is the sum of every unpaid entry.
    """
    known = await db.execute(
        select(Student).where(Student.id == student_id, Student.tenant_id == scope.tenant_id)
    )
    person = known.scalar_one_or_none()
    if not person:
        raise ReferenceNotFoundError("Student not found")

    current = await db.execute(
        select(Student).where(
            Student.tenant_id == scope.tenant_id,
            Student.session_id == scope.session_id,
            Student.unique_code == person.unique_code,
            Student.is_active.is_(True),
        )
    )
    enrolled = current.scalars().first()
    if not enrolled:
        return StudentFeeHistory(session_id=scope.session_id, history=[], total_arrears=ZERO)
    entry = to_roster_entry(enrolled)

    rows = {r.period_label: r for r in await fetch_materialized_dues(db, scope, student_ids=[entry.student_id])}
    history: List[HistoryEntry] = []
    for schedule in await fetch_schedules(db, scope):
        row = rows.pop(schedule.period_label, None)
        if row is None:
            due = virtual_due(scope, entry, schedule.period_label, to_schedule_rates(schedule))
            history.append(
                HistoryEntry(
                    fee_type=FeeType.MONTHLY,
                    period_label=due.period_label,
                    title=due.period_label,
                    breakdown=due.breakdown,
                    total_amount=due.total_amount,
                    status=due.status,
                    is_virtual=True,
                    created_at=schedule.created_at,
                )
            )
        else:
            history.append(_monthly_entry(row))
    # Materialized rows are kept even if their schedule is gone.
    history.extend(_monthly_entry(row) for row in rows.values())

    charges = await fetch_charges(db, scope, student_ids=[entry.student_id])
    history.extend(_occasional_groups(charges))

    history.sort(key=lambda h: (h.created_at is not None, h.created_at), reverse=True)
    arrears = sum((h.total_amount for h in history if h.status == FeeStatus.unpaid), Decimal("0"))
    return StudentFeeHistory(
        student_id=entry.student_id,
        session_id=scope.session_id,
        history=history,
        total_arrears=arrears,
    )


def _monthly_entry(row) -> HistoryEntry:
    return HistoryEntry(
        fee_type=FeeType.MONTHLY,
        id=row.id,
        period_label=row.period_label,
        title=row.period_label,
        breakdown=breakdown_from_json(row.breakdown),
        total_amount=to_decimal(row.total_amount),
        status=row.status,
        payment_reference=row.payment_reference,
        paid_at=row.paid_at,
        collected_by=row.collected_by,
        created_at=row.created_at,
    )
