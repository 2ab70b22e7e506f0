"""HTTP surface: routing, role checks and error mapping."""

from decimal import Decimal
from uuid import uuid4

from app.core.enums import NotificationEvent
from app.core.payment_gateway import create_signature

MARCH = {
    "period_label": "March 2026",
    "components": ["Tuition", "Transport"],
    "class_rates": {"5": {"Tuition": "1000", "Transport": "300"}},
}


async def test_publish_then_read_due(client, scope, principal_headers, make_student, notifier) -> None:
    student = await make_student(scope, "Asha Rao", transport_facility=True)

    resp = await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=principal_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["dues_written"] == 1
    assert Decimal(body["total_expected"]) == Decimal("1300")
    assert len(notifier.of_kind(NotificationEvent.FEE_PUBLISHED)) >= 1

    resp = await client.get(
        f"/api/v1/dues/student/{student.id}",
        params={"period_label": "March 2026"},
        headers=principal_headers,
    )
    assert resp.status_code == 200
    due = resp.json()
    assert due["kind"] == "materialized"
    assert Decimal(due["total_amount"]) == Decimal("1300")
    assert due["status"] == "unpaid"


async def test_missing_schedule_has_empty_shape(client, scope, principal_headers) -> None:
    resp = await client.get(
        "/api/v1/fee-schedules",
        params={"period_label": "April 2026"},
        headers=principal_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_new"] is True
    assert body["components"] == []
    assert body["class_rates"] == {}


async def test_invalid_schedule_is_400(client, scope, principal_headers) -> None:
    payload = dict(MARCH, class_rates={"5": {"Tuition": "1000", "Hostel": "50"}})
    resp = await client.post("/api/v1/fee-schedules/publish", json=payload, headers=principal_headers)
    assert resp.status_code == 400
    assert "unknown components" in resp.json()["detail"]


async def test_manual_settlement_twice_is_409(client, scope, principal_headers, make_student) -> None:
    student = await make_student(scope, "Asha Rao")
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=principal_headers)
    settle = {"student_id": str(student.id), "period_label": "March 2026", "collected_by": "Office"}

    first = await client.post("/api/v1/settlements/manual", json=settle, headers=principal_headers)
    second = await client.post("/api/v1/settlements/manual", json=settle, headers=principal_headers)

    assert first.status_code == 200, first.text
    assert first.json()["payment_reference"].startswith("COUNTER_")
    assert second.status_code == 409


async def test_gateway_bad_signature_is_400(client, scope, make_student, headers_for) -> None:
    student = await make_student(scope, "Asha Rao")
    headers = headers_for(scope.tenant_id, role="STUDENT", user_id=student.id)
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=headers_for(scope.tenant_id))

    resp = await client.post(
        "/api/v1/settlements/gateway",
        json={
            "order_ref": "order_1",
            "transaction_ref": "pay_1",
            "signature": "forged",
            "fee_type": "monthly",
            "student_id": str(student.id),
            "period_label": "March 2026",
        },
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid payment signature"


async def test_plain_teacher_cannot_publish(client, scope, headers_for) -> None:
    resp = await client.post(
        "/api/v1/fee-schedules/publish",
        json=MARCH,
        headers=headers_for(scope.tenant_id, role="TEACHER"),
    )
    assert resp.status_code == 403


async def test_special_teacher_can_collect(client, scope, make_student, headers_for) -> None:
    student = await make_student(scope, "Asha Rao")
    headers = headers_for(scope.tenant_id, role="SPECIAL_TEACHER", name="Ms Kapoor")
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=headers)

    resp = await client.post(
        "/api/v1/settlements/manual",
        json={"student_id": str(student.id), "period_label": "March 2026", "collected_by": "Ms Kapoor"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["collected_by"] == "Ms Kapoor"


async def test_student_reads_only_own_due(client, scope, make_student, headers_for) -> None:
    asha = await make_student(scope, "Asha Rao")
    bala = await make_student(scope, "Bala Iyer")
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=headers_for(scope.tenant_id))
    headers = headers_for(scope.tenant_id, role="STUDENT", user_id=asha.id)

    own = await client.get(f"/api/v1/dues/student/{asha.id}", params={"period_label": "March 2026"}, headers=headers)
    other = await client.get(f"/api/v1/dues/student/{bala.id}", params={"period_label": "March 2026"}, headers=headers)

    assert own.status_code == 200
    assert other.status_code == 403


async def test_foreign_session_override_is_403(client, scope, principal_headers, make_tenant, make_session) -> None:
    other_tenant = await make_tenant("Other School")
    foreign = await make_session(other_tenant)

    resp = await client.get(
        "/api/v1/fee-schedules/periods",
        params={"session_id": str(foreign.id)},
        headers=principal_headers,
    )
    assert resp.status_code == 403


async def test_no_active_session_is_409(client, tenant, headers_for) -> None:
    resp = await client.get("/api/v1/fee-schedules/periods", headers=headers_for(tenant.id))
    assert resp.status_code == 409


async def test_missing_token_is_401(client) -> None:
    resp = await client.get("/api/v1/fee-reports/tracking", params={"period_label": "March 2026"})
    assert resp.status_code == 401


async def test_occasional_batch_and_detail(client, scope, principal_headers, make_student) -> None:
    student = await make_student(scope, "Asha Rao")
    resp = await client.post(
        "/api/v1/occasional-fees/batches",
        json={
            "student_ids": [str(student.id)],
            "period_label": "March 2026",
            "charges": [{"fee_name": "Exam", "amount": "250"}, {"fee_name": "Trip", "amount": "0"}],
        },
        headers=principal_headers,
    )
    assert resp.status_code == 201, resp.text
    batch_id = resp.json()["batch_id"]
    assert batch_id.startswith("BATCH_")

    detail = await client.get(f"/api/v1/occasional-fees/batches/{batch_id}", headers=principal_headers)
    assert detail.status_code == 200
    [row] = detail.json()
    assert row["items"] == "Exam"

    missing = await client.get("/api/v1/occasional-fees/batches/BATCH_nope", headers=principal_headers)
    assert missing.status_code == 404


async def test_session_rotation_via_api(client, scope, principal_headers, headers_for) -> None:
    created = await client.post("/api/v1/academic-sessions", json={"name": "2026-27"}, headers=principal_headers)
    assert created.status_code == 201
    new_id = created.json()["id"]
    assert created.json()["is_current"] is False

    teacher = await client.post(
        f"/api/v1/academic-sessions/{new_id}/activate",
        headers=headers_for(scope.tenant_id, role="SPECIAL_TEACHER"),
    )
    assert teacher.status_code == 403

    activated = await client.post(f"/api/v1/academic-sessions/{new_id}/activate", headers=principal_headers)
    assert activated.status_code == 200
    assert activated.json()["is_current"] is True

    deleted = await client.delete(f"/api/v1/academic-sessions/{scope.session_id}", headers=principal_headers)
    assert deleted.status_code == 200
    assert deleted.json()["session_id"] == str(scope.session_id)

    refused = await client.delete(f"/api/v1/academic-sessions/{new_id}", headers=principal_headers)
    assert refused.status_code == 409


async def test_unknown_student_history_is_404(client, scope, principal_headers) -> None:
    resp = await client.get(f"/api/v1/fee-reports/students/{uuid4()}/history", headers=principal_headers)
    assert resp.status_code == 404


async def test_student_cannot_pay_another_students_due_by_id(client, scope, make_student, headers_for) -> None:
    asha = await make_student(scope, "Asha Rao")
    bala = await make_student(scope, "Bala Iyer")
    staff = headers_for(scope.tenant_id)
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=staff)
    bala_due = await client.get(f"/api/v1/dues/student/{bala.id}", params={"period_label": "March 2026"}, headers=staff)

    resp = await client.post(
        "/api/v1/settlements/gateway",
        json={
            "order_ref": "order_3",
            "transaction_ref": "pay_3",
            "signature": create_signature("order_3", "pay_3"),
            "fee_type": "monthly",
            "due_id": bala_due.json()["id"],
        },
        headers=headers_for(scope.tenant_id, role="STUDENT", user_id=asha.id),
    )
    assert resp.status_code == 403

    after = await client.get(f"/api/v1/dues/student/{bala.id}", params={"period_label": "March 2026"}, headers=staff)
    assert after.json()["status"] == "unpaid"


async def test_replayed_gateway_payment_is_409(client, scope, make_student, headers_for) -> None:
    asha = await make_student(scope, "Asha Rao")
    bala = await make_student(scope, "Bala Iyer")
    staff = headers_for(scope.tenant_id)
    await client.post("/api/v1/fee-schedules/publish", json=MARCH, headers=staff)

    def body(student_id):
        return {
            "order_ref": "order_4",
            "transaction_ref": "pay_4",
            "signature": create_signature("order_4", "pay_4"),
            "fee_type": "monthly",
            "student_id": str(student_id),
            "period_label": "March 2026",
        }

    first = await client.post("/api/v1/settlements/gateway", json=body(asha.id), headers=staff)
    replay = await client.post("/api/v1/settlements/gateway", json=body(bala.id), headers=staff)

    assert first.status_code == 200, first.text
    assert replay.status_code == 409
