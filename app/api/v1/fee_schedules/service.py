"""Fee schedule store: read and publish per-period component rates, republishing unpaid dues."""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dues.service import republish
from app.core.enums import NotificationEvent
from app.core.exceptions import ConflictError, InputValidationError
from app.core.fee_audit import log_fee_audit
from app.core.fee_calculator import ZERO, ScheduleRates, build_schedule_rates, class_rates_to_json
from app.core.models import FeeSchedule
from app.core.notifications import NotificationDispatcher, notify_safely, staff_of, student
from app.core.session_scope import Scope

from .schemas import FeeSchedulePublish, FeeScheduleResponse, PublishResult
from .store import fetch_schedule, fetch_schedules, to_schedule_rates

logger = logging.getLogger(__name__)


def _to_response(schedule: FeeSchedule) -> FeeScheduleResponse:
    rates = to_schedule_rates(schedule)
    return FeeScheduleResponse(
        id=schedule.id,
        session_id=schedule.session_id,
        period_label=schedule.period_label,
        components=list(rates.components),
        class_rates=rates.class_rates,
        is_new=False,
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
    )


def empty_schedule(scope: Scope, period_label: str) -> FeeScheduleResponse:
    """Shape returned for a period that has no schedule yet."""
    return FeeScheduleResponse(
        session_id=scope.session_id,
        period_label=period_label,
        components=[],
        class_rates={},
        is_new=True,
    )


def _validate(payload: FeeSchedulePublish) -> ScheduleRates:
    period_label = payload.period_label.strip()
    if not period_label:
        raise InputValidationError("period_label is required")
    rates = build_schedule_rates(period_label, payload.components, payload.class_rates)
    if not rates.components:
        raise InputValidationError("At least one fee component is required")
    if len(set(rates.components)) != len(rates.components):
        raise InputValidationError("Fee component names must be unique")
    if not rates.class_rates:
        raise InputValidationError("At least one class rate row is required")
    known = set(rates.components)
    for class_name, row in rates.class_rates.items():
        if not class_name:
            raise InputValidationError("Class label cannot be empty")
        unknown = set(row) - known
        if unknown:
            raise InputValidationError(
                f"Class {class_name} references unknown components: {', '.join(sorted(unknown))}"
            )
        if any(amount < ZERO for amount in row.values()):
            raise InputValidationError(f"Amounts for class {class_name} cannot be negative")
    return rates


async def get_schedule(db: AsyncSession, scope: Scope, period_label: str) -> Optional[FeeScheduleResponse]:
    schedule = await fetch_schedule(db, scope, period_label)
    return _to_response(schedule) if schedule else None


async def list_configured_periods(db: AsyncSession, scope: Scope) -> List[str]:
    return [s.period_label for s in await fetch_schedules(db, scope)]


async def publish(
    db: AsyncSession,
    scope: Scope,
    payload: FeeSchedulePublish,
    changed_by: Optional[str],
    notifier: Optional[NotificationDispatcher] = None,
) -> PublishResult:
    """
    Upsert the schedule for (tenant, period, session) and republish its unpaid dues in one
    transaction. Paid dues of the period are left as they are.
    """
    rates = _validate(payload)
    try:
        schedule = await fetch_schedule(db, scope, rates.period_label)
        old_value = None
        if schedule:
            old_value = {"components": schedule.components, "class_rates": schedule.class_rates}
            schedule.components = list(rates.components)
            schedule.class_rates = class_rates_to_json(rates.class_rates)
        else:
            schedule = FeeSchedule(
                tenant_id=scope.tenant_id,
                session_id=scope.session_id,
                period_label=rates.period_label,
                components=list(rates.components),
                class_rates=class_rates_to_json(rates.class_rates),
            )
            db.add(schedule)
        await db.flush()
        written = await republish(db, scope, schedule)
        await log_fee_audit(
            db, scope.tenant_id, "fee_schedules", schedule.id,
            "PUBLISH",
            old_value,
            {
                "period_label": rates.period_label,
                "components": list(rates.components),
                "class_rates": class_rates_to_json(rates.class_rates),
                "dues_written": len(written),
            },
            changed_by,
        )
        await db.commit()
        await db.refresh(schedule)
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Fee schedule for {rates.period_label} was published concurrently; retry")
    except Exception:
        await db.rollback()
        raise

    total_expected = sum((total for _, total in written), Decimal("0"))
    logger.info(
        "Published fee schedule %s for tenant %s session %s by %s: %d dues, expected %s",
        rates.period_label,
        scope.tenant_id,
        scope.session_id,
        changed_by,
        len(written),
        total_expected,
    )

    if notifier is not None:
        await notify_safely(
            notifier,
            staff_of(scope.tenant_id),
            NotificationEvent.FEE_PUBLISHED,
            {"period_label": rates.period_label, "students": len(written), "total_expected": str(total_expected)},
        )
        for entry, total in written:
            await notify_safely(
                notifier,
                student(entry.student_id),
                NotificationEvent.FEE_PUBLISHED,
                {"period_label": rates.period_label, "total_amount": str(total)},
            )

    return PublishResult(
        schedule=_to_response(schedule),
        dues_written=len(written),
        total_expected=total_expected,
    )
