"""
Due materializer: derives monthly dues from fee schedules, persists them on publish and merges
persisted (materialized) rows with computed (virtual) ones on read.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_schedules.store import fetch_schedule, to_schedule_rates
from app.core.enums import FeeStatus
from app.core.exceptions import ReferenceNotFoundError
from app.core.fee_calculator import (
    ZERO,
    ScheduleRates,
    breakdown_from_json,
    breakdown_to_json,
    compute_virtual,
    to_decimal,
)
from app.core.models import FeeSchedule, StudentDue
from app.core.roster import RosterEntry, get_roster_entry, load_roster, search_roster
from app.core.session_scope import Scope

from .schemas import MaterializedDue, StudentDueView, VirtualDue

logger = logging.getLogger(__name__)

AnyDue = Union[MaterializedDue, VirtualDue]


def materialized_due(row: StudentDue) -> MaterializedDue:
    return MaterializedDue(
        id=row.id,
        student_id=row.student_id,
        session_id=row.session_id,
        period_label=row.period_label,
        breakdown=breakdown_from_json(row.breakdown),
        total_amount=to_decimal(row.total_amount),
        status=row.status,
        payment_reference=row.payment_reference,
        paid_at=row.paid_at,
        collected_by=row.collected_by,
        created_at=row.created_at,
    )


def virtual_due(
    scope: Scope,
    student: RosterEntry,
    period_label: str,
    rates: Optional[ScheduleRates],
) -> VirtualDue:
    """Unpersisted due. No schedule for the period means nothing is owed yet (empty breakdown)."""
    if rates is None:
        breakdown, total = {}, ZERO
    else:
        breakdown, total = compute_virtual(rates, student)
    return VirtualDue(
        student_id=student.student_id,
        session_id=scope.session_id,
        period_label=period_label,
        breakdown=breakdown,
        total_amount=total,
    )


def to_due_view(student: RosterEntry, due: AnyDue) -> StudentDueView:
    return StudentDueView(
        student_id=student.student_id,
        name=student.full_name,
        class_name=student.class_name,
        section=student.section,
        roll_no=student.roll_no,
        transport_facility=student.transport_facility,
        period_label=due.period_label,
        fee_id=None if due.is_virtual else due.id,
        is_virtual=due.is_virtual,
        status=due.status,
        breakdown=due.breakdown,
        total_amount=due.total_amount,
        payment_reference=getattr(due, "payment_reference", None),
        paid_at=getattr(due, "paid_at", None),
        collected_by=getattr(due, "collected_by", None),
    )


async def fetch_materialized_dues(
    db: AsyncSession,
    scope: Scope,
    period_label: Optional[str] = None,
    student_ids: Optional[Iterable[UUID]] = None,
) -> List[StudentDue]:
    stmt = select(StudentDue).where(
        StudentDue.tenant_id == scope.tenant_id,
        StudentDue.session_id == scope.session_id,
    )
    if period_label is not None:
        stmt = stmt.where(StudentDue.period_label == period_label)
    if student_ids is not None:
        stmt = stmt.where(StudentDue.student_id.in_(list(student_ids)))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def republish(
    db: AsyncSession,
    scope: Scope,
    schedule: FeeSchedule,
) -> List[Tuple[RosterEntry, Decimal]]:
    """
    Replace every unpaid due of the schedule's period with freshly computed ones.

    Runs inside the caller's transaction (the caller commits). Paid dues are never touched;
    students with a paid due or without a class entry in the rate table get no new row.
    Returns the (student, total) pairs written.
    """
    rates = to_schedule_rates(schedule)
    await db.execute(
        delete(StudentDue).where(
            StudentDue.tenant_id == scope.tenant_id,
            StudentDue.session_id == scope.session_id,
            StudentDue.period_label == schedule.period_label,
            StudentDue.status == FeeStatus.unpaid.value,
        )
    )
    paid_result = await db.execute(
        select(StudentDue.student_id).where(
            StudentDue.tenant_id == scope.tenant_id,
            StudentDue.session_id == scope.session_id,
            StudentDue.period_label == schedule.period_label,
            StudentDue.status == FeeStatus.paid.value,
        )
    )
    already_paid = set(paid_result.scalars().all())

    written: List[Tuple[RosterEntry, Decimal]] = []
    for student in await load_roster(db, scope):
        if student.student_id in already_paid or not rates.has_class(student.class_name):
            continue
        breakdown, total = compute_virtual(rates, student)
        db.add(
            StudentDue(
                tenant_id=scope.tenant_id,
                session_id=scope.session_id,
                student_id=student.student_id,
                schedule_id=schedule.id,
                period_label=schedule.period_label,
                breakdown=breakdown_to_json(breakdown),
                total_amount=total,
                status=FeeStatus.unpaid.value,
            )
        )
        written.append((student, total))
    await db.flush()
    logger.info(
        "Republished %s for tenant %s session %s: %d unpaid dues (%d already paid)",
        schedule.period_label,
        scope.tenant_id,
        scope.session_id,
        len(written),
        len(already_paid),
    )
    return written


async def read_due(
    db: AsyncSession,
    scope: Scope,
    student_id: UUID,
    period_label: str,
) -> AnyDue:
    """Materialized due if one exists, otherwise a virtual one computed now (never persisted)."""
    student = await get_roster_entry(db, scope, student_id)
    if not student:
        raise ReferenceNotFoundError("Student not found in this academic session")
    rows = await fetch_materialized_dues(db, scope, period_label, [student_id])
    if rows:
        return materialized_due(rows[0])
    schedule = await fetch_schedule(db, scope, period_label)
    rates = to_schedule_rates(schedule) if schedule else None
    return virtual_due(scope, student, period_label, rates)


async def _views_for(
    db: AsyncSession,
    scope: Scope,
    period_label: str,
    students: List[RosterEntry],
) -> List[StudentDueView]:
    if not students:
        return []
    rows = await fetch_materialized_dues(db, scope, period_label, [s.student_id for s in students])
    by_student: Dict[UUID, StudentDue] = {r.student_id: r for r in rows}
    schedule = await fetch_schedule(db, scope, period_label)
    rates = to_schedule_rates(schedule) if schedule else None
    views = []
    for student in students:
        row = by_student.get(student.student_id)
        due = materialized_due(row) if row else virtual_due(scope, student, period_label, rates)
        views.append(to_due_view(student, due))
    return views


async def list_section_dues(
    db: AsyncSession,
    scope: Scope,
    period_label: str,
    class_name: str = "ALL",
    section: str = "ALL",
) -> List[StudentDueView]:
    """Every active student of the class/section with their due for the period, virtual-filled."""
    students = await load_roster(db, scope, class_name=class_name, section=section)
    return await _views_for(db, scope, period_label, students)


async def search_student_dues(
    db: AsyncSession,
    scope: Scope,
    period_label: str,
    query: str,
) -> List[StudentDueView]:
    """Name search for counter collection (max 10 students)."""
    if not query or not query.strip():
        return []
    students = await search_roster(db, scope, query)
    return await _views_for(db, scope, period_label, students)
