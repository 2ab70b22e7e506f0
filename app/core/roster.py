"""
Student roster provider: (student_id, class, opt-in flags, contact address) for a scope.
Fee code reads students only through here.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student
from app.core.session_scope import Scope


class RosterEntry(BaseModel):
    student_id: UUID
    unique_code: str
    full_name: str
    class_name: str
    section: Optional[str] = None
    roll_no: Optional[str] = None
    transport_facility: bool = False
    email: Optional[str] = None

    class Config:
        frozen = True


def to_roster_entry(student: Student) -> RosterEntry:
    return RosterEntry(
        student_id=student.id,
        unique_code=student.unique_code,
        full_name=student.full_name,
        class_name=str(student.class_name).strip(),
        section=student.section,
        roll_no=student.roll_no,
        transport_facility=bool(student.transport_facility),
        email=(student.email or "").strip() or None,
    )


def _scoped(scope: Scope):
    return select(Student).where(
        Student.tenant_id == scope.tenant_id,
        Student.session_id == scope.session_id,
        Student.is_active.is_(True),
    )


async def load_roster(
    db: AsyncSession,
    scope: Scope,
    class_name: Optional[str] = None,
    section: Optional[str] = None,
) -> List[RosterEntry]:
    """Active students of the scope, ordered by class, section, roll number. "ALL" disables a filter."""
    stmt = _scoped(scope)
    if class_name and class_name != "ALL":
        stmt = stmt.where(Student.class_name == class_name)
    if section and section != "ALL":
        stmt = stmt.where(Student.section == section)
    stmt = stmt.order_by(Student.class_name, Student.section, Student.roll_no, Student.full_name)
    result = await db.execute(stmt)
    return [to_roster_entry(s) for s in result.scalars().all()]


async def search_roster(db: AsyncSession, scope: Scope, query: str, limit: int = 10) -> List[RosterEntry]:
    stmt = (
        _scoped(scope)
        .where(Student.full_name.ilike(f"%{query.strip()}%"))
        .order_by(Student.full_name)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [to_roster_entry(s) for s in result.scalars().all()]


async def get_roster_entry(db: AsyncSession, scope: Scope, student_id: UUID) -> Optional[RosterEntry]:
    """Student in scope, or None. Inactive students are still returned: they may owe past dues."""
    result = await db.execute(
        select(Student).where(
            Student.id == student_id,
            Student.tenant_id == scope.tenant_id,
            Student.session_id == scope.session_id,
        )
    )
    student = result.scalar_one_or_none()
    return to_roster_entry(student) if student else None


async def get_roster_entries(db: AsyncSession, scope: Scope, student_ids: Sequence[UUID]) -> List[RosterEntry]:
    if not student_ids:
        return []
    result = await db.execute(
        select(Student).where(
            Student.id.in_(list(student_ids)),
            Student.tenant_id == scope.tenant_id,
            Student.session_id == scope.session_id,
        )
    )
    return [to_roster_entry(s) for s in result.scalars().all()]
