"""Balance recomputation: derived fields always follow the completed payments."""

import uuid
from decimal import Decimal

import pytest

from fee_ledger.api.v1.balances import service
from fee_ledger.core.exceptions import NotFoundError

from helpers import add_class, add_payment, add_statement, add_student


@pytest.fixture()
async def student(db_session):
    grade5 = await add_class(db_session, "Grade 5", {"term1": "1000"})
    return await add_student(db_session, grade5)


@pytest.mark.asyncio
async def test_recompute_sums_only_completed_payments(db_session, student) -> None:
    st = await add_statement(db_session, student, "2026-2027", "term1", "1000")
    await add_payment(db_session, st, "300")
    await add_payment(db_session, st, "150.50")
    await add_payment(db_session, st, "400", status="pending")
    await add_payment(db_session, st, "900", status="failed")

    st = await service.recompute_statement(db_session, st.id)
    await db_session.commit()

    assert st.amount_paid == Decimal("450.50")
    assert st.balance_amount == Decimal("549.50")
    assert st.status == "pending"
    assert st.balance_amount == max(Decimal("0"), st.total_payable - st.amount_paid)


@pytest.mark.asyncio
async def test_recompute_settled_statement_is_completed(db_session, student) -> None:
    st = await add_statement(db_session, student, "2026-2027", "term1", "1000")
    await add_payment(db_session, st, "1000")

    st = await service.recompute_statement(db_session, st.id)

    assert st.balance_amount == Decimal("0")
    assert st.status == "completed"


@pytest.mark.asyncio
async def test_overpaid_statement_balance_floors_at_zero(db_session, student) -> None:
    st = await add_statement(db_session, student, "2026-2027", "term1", "1000")
    await add_payment(db_session, st, "1200")

    st = await service.recompute_statement(db_session, st.id)

    assert st.amount_paid == Decimal("1200")
    assert st.balance_amount == Decimal("0")
    assert st.status == "completed"


@pytest.mark.asyncio
async def test_recompute_is_idempotent(db_session, student) -> None:
    st = await add_statement(db_session, student, "2026-2027", "term1", "1000")
    await add_payment(db_session, st, "250")

    first = await service.recompute_statement(db_session, st.id)
    await db_session.commit()
    snapshot = (first.amount_paid, first.balance_amount, first.status, first.version)

    second = await service.recompute_statement(db_session, st.id)
    await db_session.commit()

    # No field changed, so no UPDATE was issued and the version did not move.
    assert (second.amount_paid, second.balance_amount, second.status, second.version) == snapshot


@pytest.mark.asyncio
async def test_recompute_missing_statement_returns_none(db_session) -> None:
    assert await service.recompute_statement(db_session, uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_recalculate_statement_balance_not_found(db_session) -> None:
    with pytest.raises(NotFoundError):
        await service.recalculate_statement_balance(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_recompute_all_for_student(db_session, student) -> None:
    a = await add_statement(db_session, student, "2025-2026", "term3", "500")
    b = await add_statement(db_session, student, "2026-2027", "term1", "800")
    await add_payment(db_session, a, "500")
    await add_payment(db_session, b, "100")

    updated = await service.recompute_all_for_student(db_session, student.id)

    assert [(s.academic_year, s.term) for s in updated] == [("2025-2026", "term3"), ("2026-2027", "term1")]
    assert [s.balance_amount for s in updated] == [Decimal("0"), Decimal("700")]
    assert [s.status for s in updated] == ["completed", "pending"]


@pytest.mark.asyncio
async def test_recompute_all_for_term_counts_statements(db_session, student) -> None:
    grade6 = await add_class(db_session, "Grade 6")
    other = await add_student(db_session, grade6, "Brian Kiptoo")
    s1 = await add_statement(db_session, student, "2026-2027", "term1", "1000")
    await add_statement(db_session, other, "2026-2027", "term1", "1000")
    await add_statement(db_session, other, "2026-2027", "term2", "1000")
    await add_payment(db_session, s1, "600")

    count = await service.recompute_all_for_term(db_session, "2026-2027", "term1")

    assert count == 2
    await db_session.refresh(s1)
    assert s1.balance_amount == Decimal("400")
