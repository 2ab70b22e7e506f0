"""Fee schedule row access shared by publishing, due reads and reports."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.fee_calculator import ScheduleRates, build_schedule_rates
from app.core.models import FeeSchedule
from app.core.session_scope import Scope


def to_schedule_rates(schedule: FeeSchedule) -> ScheduleRates:
    return build_schedule_rates(schedule.period_label, schedule.components or [], schedule.class_rates or {})


async def fetch_schedule(db: AsyncSession, scope: Scope, period_label: str) -> Optional[FeeSchedule]:
    result = await db.execute(
        select(FeeSchedule).where(
            FeeSchedule.tenant_id == scope.tenant_id,
            FeeSchedule.session_id == scope.session_id,
            FeeSchedule.period_label == period_label,
        )
    )
    return result.scalar_one_or_none()


async def fetch_schedules(db: AsyncSession, scope: Scope) -> List[FeeSchedule]:
    """All schedules of the session, most recently configured first."""
    result = await db.execute(
        select(FeeSchedule)
        .where(
            FeeSchedule.tenant_id == scope.tenant_id,
            FeeSchedule.session_id == scope.session_id,
        )
        .order_by(FeeSchedule.created_at.desc())
    )
    return list(result.scalars().all())
