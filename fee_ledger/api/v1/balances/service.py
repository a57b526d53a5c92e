"""
Balance recomputation: derives amount_paid, balance_amount and status of a fee
statement from its completed payments, plus the bulk passes over a student,
a term, an academic year and all currently active terms.
"""

import asyncio
from datetime import date
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.config import settings
from fee_ledger.core.enums import PaymentStatus, StatementStatus
from fee_ledger.core.exceptions import ConflictError, NotFoundError, PersistenceError, ServiceError, ValidationError
from fee_ledger.core.locks import student_lock
from fee_ledger.core.models import FeePayment, FeeStatement, TermDates
from fee_ledger.core.schemas import FeeStatementResponse
from fee_ledger.core.services import ZERO, get_student, money, statement_to_response, to_uuid
from fee_ledger.core.terms import get_active_terms, validate_term

from .schemas import RecalculationSummary, StatementFailure, TermRecalculationResult

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


async def recompute_statement(db: AsyncSession, statement_id: UUID) -> Optional[FeeStatement]:
    """
    Recompute one statement from its completed payments and flush.
    Returns None when the statement does not exist. Idempotent: with no payment
    change in between, a second call writes nothing.
    The caller owns the transaction (commit/rollback).
    """
    try:
        await db.flush()
        st = await db.get(FeeStatement, statement_id, populate_existing=True)
        if st is None:
            logger.warning("Statement %s not found", statement_id)
            return None

        total_paid = (
            await db.execute(
                select(func.coalesce(func.sum(FeePayment.amount), 0)).where(
                    FeePayment.fee_statement_id == st.id,
                    FeePayment.status == PaymentStatus.completed.value,
                    FeePayment.folded_by_class_change.is_(False),
                )
            )
        ).scalar() or ZERO
        amount_paid = money(total_paid)
        balance = max(ZERO, money(st.total_payable) - amount_paid)
        new_status = StatementStatus.completed.value if balance == ZERO else StatementStatus.pending.value

        if money(st.amount_paid) != amount_paid:
            st.amount_paid = amount_paid
        if money(st.balance_amount) != balance:
            st.balance_amount = balance
        if st.status != new_status:
            st.status = new_status
        await db.flush()
    except StaleDataError:
        raise ConflictError(f"Statement {statement_id} was modified concurrently")
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not recompute statement {statement_id}: {e}")

    logger.debug(
        "Recomputed statement %s (%s %s): paid=%s balance=%s status=%s",
        st.id, st.academic_year, st.term, amount_paid, balance, new_status,
    )
    return st


async def recalculate_statement_balance(db: AsyncSession, statement_id) -> FeeStatementResponse:
    statement_id = to_uuid(statement_id)
    student_id = (
        await db.execute(select(FeeStatement.student_id).where(FeeStatement.id == statement_id))
    ).scalar_one_or_none()
    if student_id is None:
        raise NotFoundError("Fee statement not found")
    async with student_lock(student_id):
        st = await recompute_statement(db, statement_id)
        if st is None:
            raise NotFoundError("Fee statement not found")
        await db.commit()
    logger.info("Recalculated statement %s: balance = %s", st.id, st.balance_amount)
    return statement_to_response(st)


async def recompute_all_for_student(db: AsyncSession, student_id) -> List[FeeStatementResponse]:
    student = await get_student(db, student_id)
    logger.info("Starting balance update for student %s", student.full_name)
    updated: List[FeeStatement] = []
    async with student_lock(student.id):
        ids = (
            await db.execute(
                select(FeeStatement.id)
                .where(FeeStatement.student_id == student.id)
                .order_by(FeeStatement.academic_year, FeeStatement.term)
            )
        ).scalars().all()
        for sid in ids:
            st = await recompute_statement(db, sid)
            if st is not None:
                updated.append(st)
        await db.commit()
    logger.info("Completed balance update for student %s: %s statements updated", student.full_name, len(updated))
    return [statement_to_response(s) for s in updated]


async def _term_statement_ids(db: AsyncSession, academic_year: str, term: str) -> List[UUID]:
    result = await db.execute(
        select(FeeStatement.id)
        .where(FeeStatement.academic_year == academic_year, FeeStatement.term == term)
        .order_by(FeeStatement.student_id)
    )
    return list(result.scalars().all())


async def recompute_all_for_term(db: AsyncSession, academic_year: str, term: str) -> int:
    """Recompute every statement of one term in a single transaction. Errors propagate."""
    term = validate_term(term)
    academic_year = (academic_year or "").strip()
    if not academic_year:
        raise ValidationError("academic_year is required")
    logger.info("Starting balance update for term: %s - %s", academic_year, term)
    count = 0
    for sid in await _term_statement_ids(db, academic_year, term):
        if await recompute_statement(db, sid) is not None:
            count += 1
    await db.commit()
    logger.info("Completed balance update for %s - %s: %s statements updated", academic_year, term, count)
    return count


async def recompute_all_for_year(db: AsyncSession, academic_year: str) -> RecalculationSummary:
    academic_year = (academic_year or "").strip()
    if not academic_year:
        raise ValidationError("academic_year is required")
    terms = (
        await db.execute(
            select(TermDates.term).where(TermDates.academic_year == academic_year).order_by(TermDates.term)
        )
    ).scalars().all()
    if not terms:
        raise NotFoundError(f"No terms found for academic year {academic_year}")

    total = 0
    results: List[TermRecalculationResult] = []
    for term in terms:
        try:
            count = await recompute_all_for_term(db, academic_year, term)
        except ServiceError as e:
            await db.rollback()
            logger.error("Balance update failed for %s - %s: %s", academic_year, term, e.message)
            results.append(TermRecalculationResult(academic_year=academic_year, term=term, status="failed", error=e.message))
            continue
        total += count
        results.append(TermRecalculationResult(academic_year=academic_year, term=term, count=count))

    logger.info(
        "Completed balance update for academic year %s: %s statements updated across %s terms",
        academic_year, total, len(terms),
    )
    return RecalculationSummary(total_updated=total, results=results)


async def _recompute_in_own_session(session_factory: SessionFactory, statement_id: UUID) -> bool:
    async with session_factory() as db:
        st = await recompute_statement(db, statement_id)
        if st is None:
            return False
        await db.commit()
        return True


async def reconcile_term(
    session_factory: SessionFactory,
    academic_year: str,
    term: str,
    item_timeout: Optional[float] = None,
) -> TermRecalculationResult:
    """
    Recompute every statement of a term, each in its own session and under a timeout.
    A failing or stalled statement is recorded and the pass moves on.
    """
    item_timeout = item_timeout or settings.sweep_item_timeout_seconds
    result = TermRecalculationResult(academic_year=academic_year, term=term)
    async with session_factory() as db:
        ids = await _term_statement_ids(db, academic_year, term)

    for sid in ids:
        try:
            if await asyncio.wait_for(_recompute_in_own_session(session_factory, sid), timeout=item_timeout):
                result.count += 1
        except asyncio.TimeoutError:
            reason = f"timed out after {item_timeout}s"
            logger.error("Statement %s (%s - %s) %s", sid, academic_year, term, reason)
            result.failures.append(StatementFailure(statement_id=sid, academic_year=academic_year, term=term, reason=reason))
        except Exception as e:
            reason = e.message if isinstance(e, ServiceError) else str(e) or e.__class__.__name__
            logger.error("Statement %s (%s - %s) failed: %s", sid, academic_year, term, reason)
            result.failures.append(StatementFailure(statement_id=sid, academic_year=academic_year, term=term, reason=reason))

    if result.failures:
        result.status = "partial" if result.count else "failed"
        result.error = f"{len(result.failures)} statement(s) failed"
    return result


async def propagate_term_statements(
    session_factory: SessionFactory,
    academic_year: str,
    term: str,
    today: Optional[date] = None,
) -> int:
    """
    Open the statement of every active student that still lacks one for an active term.
    Covers terms that became active after they were created. Failures are logged, never raised.
    """
    # statements.service imports this module
    from fee_ledger.api.v1.statements.service import create_statements_for_term

    async with session_factory() as db:
        try:
            term_dates = (
                await db.execute(
                    select(TermDates).where(TermDates.academic_year == academic_year, TermDates.term == term)
                )
            ).scalar_one_or_none()
            if term_dates is None:
                return 0
            return await create_statements_for_term(db, term_dates, today)
        except (ServiceError, SQLAlchemyError) as e:
            await db.rollback()
            reason = e.message if isinstance(e, ServiceError) else str(e)
            logger.error("Statement propagation failed for %s - %s: %s", academic_year, term, reason)
            return 0


async def recompute_all_active_terms(
    session_factory: SessionFactory,
    today: Optional[date] = None,
    item_timeout: Optional[float] = None,
) -> RecalculationSummary:
    logger.info("Starting balance update for all active terms")
    async with session_factory() as db:
        active = [(t.academic_year, t.term) for t in await get_active_terms(db, today)]

    if not active:
        logger.info("No active terms found")
        return RecalculationSummary(total_updated=0, results=[])

    total = 0
    results: List[TermRecalculationResult] = []
    for academic_year, term in active:
        created = await propagate_term_statements(session_factory, academic_year, term, today)
        try:
            term_result = await reconcile_term(session_factory, academic_year, term, item_timeout)
        except Exception as e:
            logger.error("Balance update failed for %s - %s: %s", academic_year, term, e)
            term_result = TermRecalculationResult(academic_year=academic_year, term=term, status="failed", error=str(e))
        term_result.statements_created = created
        total += term_result.count
        results.append(term_result)

    logger.info(
        "Completed balance update for active terms: %s statements updated across %s terms",
        total, len(active),
    )
    return RecalculationSummary(total_updated=total, results=results)
