"""Section lists and counter search over materialized and virtual dues."""

from decimal import Decimal

from app.api.v1.dues import service
from app.api.v1.fee_schedules import service as schedules_service
from app.api.v1.fee_schedules.schemas import FeeSchedulePublish
from app.core.enums import FeeStatus

MARCH = FeeSchedulePublish(
    period_label="March 2026",
    components=["Tuition", "Bus Fee"],
    class_rates={"5": {"Tuition": "1000", "Bus Fee": "300"}},
)


async def test_section_list_mixes_materialized_and_virtual(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao", section="A", roll_no="1")
    await schedules_service.publish(db_session, scope, MARCH, changed_by="Principal")
    await make_student(scope, "Bala Iyer", section="A", roll_no="2", transport_facility=True)
    await make_student(scope, "Chitra Nair", section="B", roll_no="1")

    views = await service.list_section_dues(db_session, scope, "March 2026", class_name="5", section="A")

    assert [v.name for v in views] == ["Asha Rao", "Bala Iyer"]
    asha, bala = views
    assert asha.is_virtual is False
    assert asha.fee_id is not None
    assert asha.total_amount == Decimal("1000")
    assert bala.is_virtual is True
    assert bala.fee_id is None
    assert bala.total_amount == Decimal("1300")
    assert bala.status == FeeStatus.unpaid

    everyone = await service.list_section_dues(db_session, scope, "March 2026")
    assert len(everyone) == 3


async def test_search_is_case_insensitive(db_session, scope, make_student) -> None:
    await make_student(scope, "Asha Rao")
    await make_student(scope, "Bala Iyer")
    await schedules_service.publish(db_session, scope, MARCH, changed_by="Principal")

    [hit] = await service.search_student_dues(db_session, scope, "March 2026", "asha")

    assert hit.name == "Asha Rao"
    assert hit.total_amount == Decimal("1000")
    assert await service.search_student_dues(db_session, scope, "March 2026", "   ") == []


async def test_search_caps_results(db_session, scope, make_student) -> None:
    for i in range(12):
        await make_student(scope, f"Student {i:02d}")

    hits = await service.search_student_dues(db_session, scope, "March 2026", "student")

    assert len(hits) == 10
    assert all(h.total_amount == Decimal("0") for h in hits)
