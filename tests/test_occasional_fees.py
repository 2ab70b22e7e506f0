"""Occasional charge batches: apply, history, detail, presets."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.api.v1.occasional_fees import service
from app.api.v1.occasional_fees.schemas import ApplyBatchRequest, ChargeLine, OccasionalFeeTypeSave
from app.api.v1.settlements import service as settlements_service
from app.api.v1.settlements.schemas import BatchSettleRequest, ChargeSettleRequest
from app.core.enums import FeeStatus, NotificationEvent
from app.core.exceptions import AlreadySettledError, InputValidationError, ReferenceNotFoundError
from app.core.models import OccasionalCharge


def _request(student_ids, charges=None, period_label="March 2026") -> ApplyBatchRequest:
    return ApplyBatchRequest(
        student_ids=student_ids,
        period_label=period_label,
        charges=charges or [ChargeLine(fee_name="Library", amount=Decimal("100")), ChargeLine(fee_name="Lab", amount=Decimal("50"))],
    )


async def test_apply_batch_creates_one_row_per_student_and_charge(db_session, scope, make_student, notifier) -> None:
    a = await make_student(scope, "Asha Rao")
    b = await make_student(scope, "Bala Iyer")

    result = await service.apply_batch(db_session, scope, _request([a.id, b.id]), changed_by="Office", notifier=notifier)

    assert result.batch_id.startswith("BATCH_")
    assert result.charges_created == 4
    assert result.total_expected == Decimal("300")
    rows = (await db_session.execute(select(OccasionalCharge))).scalars().all()
    assert len(rows) == 4
    assert {r.batch_id for r in rows} == {result.batch_id}
    assert all(r.status == FeeStatus.unpaid.value for r in rows)
    assert len(notifier.of_kind(NotificationEvent.NEW_FEE)) == 2


async def test_zero_amount_lines_are_skipped(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao")
    charges = [ChargeLine(fee_name="Library", amount=Decimal("100")), ChargeLine(fee_name="Sports", amount=Decimal("0"))]
    result = await service.apply_batch(db_session, scope, _request([a.id], charges), changed_by="Office")
    assert result.charges_created == 1


@pytest.mark.parametrize(
    "charges, message",
    [
        ([], "At least one charge"),
        ([ChargeLine(fee_name="Library", amount=Decimal("-1"))], "negative"),
        ([ChargeLine(fee_name="Library", amount=Decimal("10")), ChargeLine(fee_name="library", amount=Decimal("5"))], "Duplicate"),
        ([ChargeLine(fee_name="Library", amount=Decimal("0"))], "greater than 0"),
    ],
)
async def test_apply_batch_rejects_bad_charges(db_session, scope, make_student, charges, message) -> None:
    a = await make_student(scope, "Asha Rao")
    payload = ApplyBatchRequest(student_ids=[a.id], period_label="March 2026", charges=charges)
    with pytest.raises(InputValidationError) as exc:
        await service.apply_batch(db_session, scope, payload, changed_by="Office")
    assert message in exc.value.message


async def test_apply_batch_rejects_empty_student_list(db_session, scope) -> None:
    with pytest.raises(InputValidationError):
        await service.apply_batch(db_session, scope, _request([]), changed_by="Office")


async def test_apply_batch_rejects_students_outside_scope(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao")
    with pytest.raises(ReferenceNotFoundError):
        await service.apply_batch(db_session, scope, _request([a.id, uuid4()]), changed_by="Office")
    assert (await db_session.execute(select(OccasionalCharge))).scalars().all() == []


async def test_batch_settlement_converges_after_partial_payment(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao", roll_no="1")
    b = await make_student(scope, "Bala Iyer", roll_no="2")
    applied = await service.apply_batch(db_session, scope, _request([a.id, b.id]), changed_by="Office")

    rows = await service.fetch_charges(db_session, scope, batch_id=applied.batch_id, student_ids=[a.id])
    library = next(r for r in rows if r.fee_name == "Library")
    await settlements_service.settle_charge(db_session, scope, library.id, ChargeSettleRequest(collected_by="Office"))

    detail = {d.student_id: d for d in await service.detail(db_session, scope, applied.batch_id)}
    assert detail[a.id].status == FeeStatus.unpaid

    settled = await settlements_service.settle_batch_for_student(
        db_session, scope, BatchSettleRequest(batch_id=applied.batch_id, student_id=a.id, collected_by="Office")
    )
    assert [r.label for r in settled.records] == ["Lab"]
    assert settled.total_amount == Decimal("50")

    detail = {d.student_id: d for d in await service.detail(db_session, scope, applied.batch_id)}
    assert detail[a.id].status == FeeStatus.paid
    assert detail[b.id].status == FeeStatus.unpaid

    with pytest.raises(AlreadySettledError):
        await settlements_service.settle_batch_for_student(
            db_session, scope, BatchSettleRequest(batch_id=applied.batch_id, student_id=a.id, collected_by="Office")
        )


async def test_history_summarizes_batches(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao")
    b = await make_student(scope, "Bala Iyer")
    applied = await service.apply_batch(db_session, scope, _request([a.id, b.id]), changed_by="Office")
    await settlements_service.settle_batch_for_student(
        db_session, scope, BatchSettleRequest(batch_id=applied.batch_id, student_id=a.id, collected_by="Office")
    )

    history = await service.history(db_session, scope, "March 2026")

    assert len(history) == 1
    summary = history[0]
    assert summary.batch_id == applied.batch_id
    assert summary.total_students == 2
    assert summary.paid_students == 1
    assert summary.total_expected == Decimal("300")
    assert summary.total_collected == Decimal("150")
    assert summary.reasons == "Lab, Library"
    assert summary.collected_by == "Office"
    assert await service.history(db_session, scope, "April 2026") == []


async def test_detail_rows(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao", roll_no="1")
    applied = await service.apply_batch(db_session, scope, _request([a.id]), changed_by="Office")

    [row] = await service.detail(db_session, scope, applied.batch_id)

    assert row.name == "Asha Rao"
    assert row.total_amount == Decimal("150")
    assert set(row.items.split(" + ")) == {"Library", "Lab"}
    assert row.amount_breakdown == {"Library": Decimal("100"), "Lab": Decimal("50")}
    assert row.status == FeeStatus.unpaid


async def test_detail_of_unknown_batch(db_session, scope) -> None:
    with pytest.raises(ReferenceNotFoundError):
        await service.detail(db_session, scope, "BATCH_MISSING")


async def test_fee_type_presets(db_session, scope) -> None:
    saved = await service.save_fee_type(db_session, scope, OccasionalFeeTypeSave(fee_name="Library", default_amount=Decimal("100")))
    updated = await service.save_fee_type(db_session, scope, OccasionalFeeTypeSave(fee_name="Library", default_amount=Decimal("120")))
    await service.save_fee_type(db_session, scope, OccasionalFeeTypeSave(fee_name="Exam", default_amount=Decimal("250")))

    assert updated.id == saved.id
    types = await service.list_fee_types(db_session, scope)
    assert [(t.fee_name, t.default_amount) for t in types] == [("Exam", Decimal("250")), ("Library", Decimal("120"))]

    await service.delete_fee_type(db_session, scope, saved.id)
    assert [t.fee_name for t in await service.list_fee_types(db_session, scope)] == ["Exam"]
    with pytest.raises(ReferenceNotFoundError):
        await service.delete_fee_type(db_session, scope, saved.id)


async def test_history_counts_a_student_as_paid_only_when_every_line_is(db_session, scope, make_student) -> None:
    a = await make_student(scope, "Asha Rao")
    a_id = a.id
    applied = await service.apply_batch(db_session, scope, _request([a_id]), changed_by="Office")
    rows = await service.fetch_charges(db_session, scope, batch_id=applied.batch_id)
    library = next(r for r in rows if r.fee_name == "Library")
    await settlements_service.settle_charge(db_session, scope, library.id, ChargeSettleRequest(collected_by="Office"))

    [summary] = await service.history(db_session, scope, "March 2026")
    [row] = await service.detail(db_session, scope, applied.batch_id)
    assert row.status == FeeStatus.unpaid
    assert summary.paid_students == 0
    assert summary.total_collected == Decimal("100")

    await settlements_service.settle_batch_for_student(
        db_session, scope, BatchSettleRequest(batch_id=applied.batch_id, student_id=a_id, collected_by="Office")
    )

    [summary] = await service.history(db_session, scope, "March 2026")
    assert summary.paid_students == 1
    assert summary.total_collected == Decimal("150")
