"""Scheduled reconciliation sweep: per-statement isolation and scheduler state."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from fee_ledger.api.v1.balances import service
from fee_ledger.api.v1.balances.scheduler import BalanceSweepScheduler, validate_interval
from fee_ledger.api.v1.balances.schemas import RecalculationSummary
from fee_ledger.api.v1.terms.schemas import TermCreate
from fee_ledger.api.v1.terms.service import create_term
from fee_ledger.core.exceptions import PersistenceError, ValidationError
from fee_ledger.core.models import FeeStatement

from helpers import add_class, add_payment, add_statement, add_student, add_term

TODAY = date(2026, 2, 10)


@pytest.fixture()
async def five_statements(db_session):
    """Five students in an active term, each with a 100 payment not yet reflected on the statement."""
    await add_term(db_session, "2025-2026", "term2", date(2026, 1, 5), date(2026, 4, 10))
    grade5 = await add_class(db_session, "Grade 5", {"term2": "1000"})
    for i in range(5):
        student = await add_student(db_session, grade5, f"Student {i}")
        st = await add_statement(db_session, student, "2025-2026", "term2", "1000")
        await add_payment(db_session, st, "100")
    return await service._term_statement_ids(db_session, "2025-2026", "term2")


@pytest.mark.asyncio
async def test_failing_statement_does_not_stop_the_sweep(session_factory, five_statements, monkeypatch) -> None:
    third = five_statements[2]
    real_recompute = service.recompute_statement

    async def flaky_recompute(db, statement_id):
        if statement_id == third:
            raise PersistenceError("database unavailable")
        return await real_recompute(db, statement_id)

    monkeypatch.setattr(service, "recompute_statement", flaky_recompute)

    result = await service.recompute_all_active_terms(session_factory, today=TODAY, item_timeout=5)

    assert result.total_updated == 4
    term_result = result.results[0]
    assert (term_result.academic_year, term_result.term) == ("2025-2026", "term2")
    assert term_result.status == "partial"
    assert [f.statement_id for f in term_result.failures] == [third]
    assert term_result.failures[0].reason == "database unavailable"

    async with session_factory() as db:
        for sid in five_statements:
            st = await db.get(FeeStatement, sid)
            expected = Decimal("1000") if sid == third else Decimal("900")
            assert st.balance_amount == expected


@pytest.mark.asyncio
async def test_stalled_statement_times_out(session_factory, five_statements, monkeypatch) -> None:
    first = five_statements[0]
    real_recompute = service.recompute_statement

    async def stalled_recompute(db, statement_id):
        if statement_id == first:
            await asyncio.sleep(10)
        return await real_recompute(db, statement_id)

    monkeypatch.setattr(service, "recompute_statement", stalled_recompute)

    result = await service.reconcile_term(session_factory, "2025-2026", "term2", item_timeout=0.05)

    assert result.count == 4
    assert [f.statement_id for f in result.failures] == [first]
    assert "timed out" in result.failures[0].reason


@pytest.mark.asyncio
async def test_no_active_terms_is_an_empty_result(session_factory, five_statements) -> None:
    result = await service.recompute_all_active_terms(session_factory, today=TODAY + timedelta(days=365))

    assert result.total_updated == 0
    assert result.results == []


def test_interval_bounds() -> None:
    assert validate_interval(1) == 1
    assert validate_interval(1440) == 1440
    with pytest.raises(ValidationError):
        validate_interval(0)
    with pytest.raises(ValidationError):
        validate_interval(1441)


@pytest.mark.asyncio
async def test_scheduler_start_stop(session_factory, monkeypatch) -> None:
    calls = []

    async def fake_sweep(factory, today=None, item_timeout=None):
        calls.append(factory)
        return RecalculationSummary(total_updated=3, results=[])

    monkeypatch.setattr(service, "recompute_all_active_terms", fake_sweep)
    scheduler = BalanceSweepScheduler(session_factory)

    assert await scheduler.start(5) is True
    assert await scheduler.start(10) is False
    for _ in range(5):
        await asyncio.sleep(0)

    status = scheduler.status()
    assert status.running is True
    assert status.interval_minutes == 5
    assert status.last_total_updated == 3
    assert calls == [session_factory]

    assert await scheduler.stop() is True
    assert scheduler.status().running is False
    assert await scheduler.stop() is False


@pytest.mark.asyncio
async def test_scheduler_rejects_bad_interval(session_factory) -> None:
    scheduler = BalanceSweepScheduler(session_factory)

    with pytest.raises(ValidationError):
        await scheduler.start(0)
    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_run_once_never_raises(session_factory, monkeypatch) -> None:
    async def broken_sweep(factory, today=None, item_timeout=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(service, "recompute_all_active_terms", broken_sweep)
    scheduler = BalanceSweepScheduler(session_factory)

    assert await scheduler.run_once() is None
    assert scheduler.run_count == 1
    assert scheduler.last_run_at is not None


@pytest.mark.asyncio
async def test_sweep_opens_statements_for_term_that_became_active(db_session, session_factory) -> None:
    grade5 = await add_class(db_session, "Grade 5", {"term2": "1000"})
    student = await add_student(db_session, grade5)
    created = await create_term(
        db_session,
        TermCreate(academic_year="2025-2026", term="term2", start_date=date(2026, 1, 5), end_date=date(2026, 4, 10)),
        today=date(2025, 12, 1),
    )
    assert created.statements_created == 0

    result = await service.recompute_all_active_terms(session_factory, today=TODAY, item_timeout=5)

    term_result = result.results[0]
    assert (term_result.statements_created, term_result.count, term_result.status) == (1, 1, "success")
    async with session_factory() as db:
        rows = (await db.execute(select(FeeStatement).where(FeeStatement.student_id == student.id))).scalars().all()
    assert [(st.term, st.total_payable) for st in rows] == [("term2", Decimal("1000"))]

    again = await service.recompute_all_active_terms(session_factory, today=TODAY, item_timeout=5)
    assert again.results[0].statements_created == 0
