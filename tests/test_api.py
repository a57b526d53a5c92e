"""HTTP surface: service errors map to status codes, and the main flows work end to end."""

import uuid
from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from fee_ledger.api.v1.balances.scheduler import sweep_scheduler

ACTOR = str(uuid.uuid4())


async def _active_school(client: AsyncClient) -> dict:
    """Class with a term1 fee, an active term1 and one enrolled student."""
    today = date.today()
    year = f"{today.year}-{today.year + 1}"
    r = await client.post("/api/v1/classes", json={"name": "Grade 4"})
    assert r.status_code == 201
    class_id = r.json()["id"]
    r = await client.put(f"/api/v1/classes/{class_id}/fees/term1", json={"amount": "1200"})
    assert r.status_code == 200
    r = await client.post(
        "/api/v1/terms",
        json={
            "academic_year": year,
            "term": "term1",
            "start_date": (today - timedelta(days=10)).isoformat(),
            "end_date": (today + timedelta(days=60)).isoformat(),
        },
    )
    assert r.status_code == 201
    assert r.json()["term"]["status"] == "active"
    r = await client.post(
        "/api/v1/students",
        json={"admission_number": "ADM-1001", "full_name": "Amina Otieno", "class_id": class_id},
    )
    assert r.status_code == 201
    body = r.json()
    return {"year": year, "class_id": class_id, "student": body["student"], "statements": body["statements"]}


@pytest.mark.asyncio
async def test_enrolment_opens_active_term_statement(client: AsyncClient) -> None:
    school = await _active_school(client)

    assert len(school["statements"]) == 1
    st = school["statements"][0]
    assert st["term"] == "term1"
    assert float(st["total_payable"]) == 1200.0
    assert st["status"] == "pending"


@pytest.mark.asyncio
async def test_payment_flow_and_summary(client: AsyncClient) -> None:
    school = await _active_school(client)
    student_id = school["student"]["id"]

    r = await client.post(
        "/api/v1/payments",
        json={
            "student_id": student_id,
            "academic_year_term": f"{school['year']}-term1",
            "amount": "500",
            "created_by": ACTOR,
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert len(body["payments"]) == 1
    assert body["payments"][0]["reference_number"].startswith("FEE-")
    assert body["payments"][0]["payment_method"] == "cash"
    assert float(body["final_statement"]["balance_amount"]) == 700.0

    r = await client.get(f"/api/v1/statements/student/{student_id}/summary")
    assert r.status_code == 200
    summary = r.json()
    assert float(summary["total_paid"]) == 500.0
    assert float(summary["total_balance"]) == 700.0

    r = await client.get(f"/api/v1/payments/student/{student_id}")
    assert [p["reference_number"] for p in r.json()] == [body["payments"][0]["reference_number"]]


@pytest.mark.asyncio
async def test_statement_with_payments_delete_is_400(client: AsyncClient) -> None:
    school = await _active_school(client)
    statement_id = school["statements"][0]["id"]
    r = await client.post(
        "/api/v1/payments",
        json={"student_id": school["student"]["id"], "fee_statement_id": statement_id, "amount": "50", "created_by": ACTOR},
    )
    assert r.status_code == 201

    r = await client.delete(f"/api/v1/statements/{statement_id}")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_unknown_student_is_404(client: AsyncClient) -> None:
    r = await client.post(
        "/api/v1/payments",
        json={"student_id": str(uuid.uuid4()), "amount": "100", "created_by": ACTOR},
    )
    assert r.status_code == 404

    r = await client.post(f"/api/v1/balances/students/{uuid.uuid4()}/recalculate")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_term_validation_and_duplicates(client: AsyncClient) -> None:
    payload = {"academic_year": "2030-2031", "term": "term2", "start_date": "2031-01-05", "end_date": "2031-04-02"}

    r = await client.post("/api/v1/terms", json={**payload, "term": "term9"})
    assert r.status_code == 400
    r = await client.post("/api/v1/terms", json={**payload, "end_date": "2030-12-01"})
    assert r.status_code == 400
    r = await client.post("/api/v1/terms", json=payload)
    assert r.status_code == 201
    assert r.json()["statements_created"] == 0
    r = await client.post("/api/v1/terms", json=payload)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_class_change_through_student_update(client: AsyncClient) -> None:
    school = await _active_school(client)
    student_id = school["student"]["id"]
    await client.post(
        "/api/v1/payments",
        json={"student_id": student_id, "academic_year_term": f"{school['year']}-term1", "amount": "200", "created_by": ACTOR},
    )
    r = await client.post("/api/v1/classes", json={"name": "Grade 5"})
    grade5 = r.json()["id"]
    await client.put(f"/api/v1/classes/{grade5}/fees/term1", json={"amount": "1500"})

    r = await client.patch(f"/api/v1/students/{student_id}", json={"class_id": grade5})

    assert r.status_code == 200
    body = r.json()
    assert body["student"]["class_id"] == grade5
    st = body["updated_statements"][0]
    assert float(st["total_payable"]) == 1000.0
    assert float(st["amount_paid"]) == 0.0
    assert float(st["current_term_fee"]) == 1500.0


@pytest.mark.asyncio
async def test_term_and_active_terms_recalculate(client: AsyncClient, session_factory, monkeypatch) -> None:
    school = await _active_school(client)
    monkeypatch.setattr(sweep_scheduler, "session_factory", session_factory)

    r = await client.post("/api/v1/balances/terms/recalculate", json={"academic_year": school["year"], "term": "term1"})
    assert r.status_code == 200
    assert r.json()["updated_count"] == 1

    r = await client.post("/api/v1/balances/active-terms/recalculate")
    assert r.status_code == 200
    assert r.json()["total_updated"] == 1

    r = await client.post("/api/v1/balances/terms/recalculate", json={"academic_year": school["year"], "term": "term7"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_schedule_status_and_bad_interval(client: AsyncClient) -> None:
    r = await client.get("/api/v1/balances/schedule/status")
    assert r.status_code == 200
    assert r.json()["running"] is False

    r = await client.post("/api/v1/balances/schedule/start", json={"interval_minutes": 5000})
    assert r.status_code == 400
