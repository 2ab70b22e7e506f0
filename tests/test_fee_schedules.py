"""Publishing fee schedules and the dues it materializes."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from app.api.v1.dues import service as dues_service
from app.api.v1.fee_schedules import service
from app.api.v1.fee_schedules.schemas import FeeSchedulePublish
from app.api.v1.settlements import service as settlements_service
from app.api.v1.settlements.schemas import ManualDueSettleRequest
from app.core.enums import FeeStatus, NotificationEvent
from app.core.exceptions import InputValidationError
from app.core.models import FeeAuditLog, StudentDue


def _march(tuition: str = "1000", transport: str = "300") -> FeeSchedulePublish:
    return FeeSchedulePublish(
        period_label="March 2026",
        components=["Tuition", "Transport"],
        class_rates={"5": {"Tuition": tuition, "Transport": transport}},
    )


async def _dues(db_session, scope):
    result = await db_session.execute(
        select(StudentDue).where(StudentDue.session_id == scope.session_id).order_by(StudentDue.total_amount)
    )
    return list(result.scalars().all())


async def test_get_schedule_absent_returns_none(db_session, scope) -> None:
    assert await service.get_schedule(db_session, scope, "March 2026") is None
    empty = service.empty_schedule(scope, "March 2026")
    assert empty.is_new is True
    assert empty.components == []


async def test_publish_materializes_unpaid_dues(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao", transport_facility=False)
    await make_student(scope, "Bala Iyer", transport_facility=True)

    result = await service.publish(db_session, scope, _march(), changed_by="Principal")

    assert result.dues_written == 2
    assert result.total_expected == Decimal("2300")
    dues = await _dues(db_session, scope)
    assert [d.total_amount for d in dues] == [Decimal("1000"), Decimal("1300")]
    assert all(d.status == FeeStatus.unpaid.value for d in dues)
    stored = await service.get_schedule(db_session, scope, "March 2026")
    assert stored.components == ["Tuition", "Transport"]
    assert stored.class_rates["5"]["Transport"] == Decimal("300")


async def test_republish_is_idempotent(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao")
    await service.publish(db_session, scope, _march(), changed_by="Principal")
    first = [(d.student_id, d.total_amount) for d in await _dues(db_session, scope)]

    await service.publish(db_session, scope, _march(), changed_by="Principal")
    second = [(d.student_id, d.total_amount) for d in await _dues(db_session, scope)]

    assert first == second
    assert len(second) == 1


async def test_republish_updates_unpaid_but_never_paid(db_session, scope, make_student) -> None:
    paid_student = await make_student(scope, "Asha Rao")
    await make_student(scope, "Bala Iyer")
    await service.publish(db_session, scope, _march(), changed_by="Principal")
    await settlements_service.settle_due_manually(
        db_session,
        scope,
        ManualDueSettleRequest(student_id=paid_student.id, period_label="March 2026", collected_by="Office"),
    )

    result = await service.publish(db_session, scope, _march(tuition="1500"), changed_by="Principal")

    assert result.dues_written == 1
    dues = {d.student_id: d for d in await _dues(db_session, scope)}
    assert dues[paid_student.id].status == FeeStatus.paid.value
    assert dues[paid_student.id].total_amount == Decimal("1000")
    others = [d for sid, d in dues.items() if sid != paid_student.id]
    assert others[0].total_amount == Decimal("1500")


async def test_students_of_unconfigured_class_are_skipped(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao", class_name="5")
    await make_student(scope, "Chitra Nair", class_name="8")

    result = await service.publish(db_session, scope, _march(), changed_by="Principal")

    assert result.dues_written == 1
    dues = await _dues(db_session, scope)
    assert len(dues) == 1


async def test_inactive_students_get_no_due(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao")
    await make_student(scope, "Left School", is_active=False)
    result = await service.publish(db_session, scope, _march(), changed_by="Principal")
    assert result.dues_written == 1


@pytest.mark.parametrize(
    "components, class_rates, message",
    [
        ([], {"5": {}}, "At least one fee component"),
        (["Tuition", "Tuition"], {"5": {"Tuition": 1}}, "unique"),
        (["Tuition"], {}, "class rate"),
        (["Tuition"], {"5": {"Lab": 10}}, "unknown components"),
        (["Tuition"], {"5": {"Tuition": -5}}, "negative"),
    ],
)
async def test_publish_rejects_invalid_schedules(db_session, scope, components, class_rates, message) -> None:
    payload = FeeSchedulePublish(period_label="March 2026", components=components, class_rates=class_rates)
    with pytest.raises(InputValidationError) as exc:
        await service.publish(db_session, scope, payload, changed_by="Principal")
    assert message in exc.value.message
    assert await service.get_schedule(db_session, scope, "March 2026") is None


async def test_publish_writes_audit_and_notifies(db_session, scope, make_student, notifier) -> None:
    student = await make_student(scope, "Asha Rao")
    await service.publish(db_session, scope, _march(), changed_by="Principal", notifier=notifier)

    audit = (await db_session.execute(select(FeeAuditLog))).scalars().all()
    assert [a.action_type for a in audit] == ["PUBLISH"]
    assert audit[0].changed_by == "Principal"

    published = notifier.of_kind(NotificationEvent.FEE_PUBLISHED)
    assert any(audience.target_id == student.id for audience, _, _ in published)


async def test_list_configured_periods(db_session, scope) -> None:
    await service.publish(db_session, scope, _march(), changed_by="Principal")
    april = _march()
    april.period_label = "April 2026"
    await service.publish(db_session, scope, april, changed_by="Principal")
    periods = await service.list_configured_periods(db_session, scope)
    assert set(periods) == {"March 2026", "April 2026"}


async def test_read_due_is_virtual_before_publish(db_session, scope, make_student) -> None:
    student = await make_student(scope, "Asha Rao")
    assert (await dues_service.read_due(db_session, scope, student.id, "March 2026")).total_amount == Decimal("0")

    # Configure without any materialization: insert the schedule row only.
    await service.publish(db_session, scope, _march(), changed_by="Principal")
    await db_session.execute(StudentDue.__table__.delete())
    await db_session.commit()

    due = await dues_service.read_due(db_session, scope, student.id, "March 2026")
    assert due.is_virtual is True
    assert due.kind == "virtual"
    assert due.breakdown == {"Tuition": Decimal("1000")}
    assert len(await _dues(db_session, scope)) == 0
