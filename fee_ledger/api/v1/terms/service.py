"""Term dates lifecycle. Creating an active term opens statements; editing one recomputes its balances."""

from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from fee_ledger.core.models import FeeStatement, TermDates
from fee_ledger.core.services import to_uuid
from fee_ledger.core.terms import get_active_terms, term_status, validate_term
from fee_ledger.api.v1.balances.service import recompute_all_for_term
from fee_ledger.api.v1.statements.service import create_statements_for_term, get_term_dates

from .schemas import TermCreate, TermCreateResponse, TermResponse, TermUpdate, TermUpdateResponse

logger = get_logger(__name__)


def _to_response(t: TermDates, today: Optional[date] = None) -> TermResponse:
    return TermResponse(
        id=t.id,
        academic_year=t.academic_year,
        term=t.term,
        start_date=t.start_date,
        end_date=t.end_date,
        status=term_status(t, today),
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise ValidationError("start_date must be before end_date")


async def _get_term(db: AsyncSession, term_id) -> TermDates:
    t = await db.get(TermDates, to_uuid(term_id))
    if not t:
        raise NotFoundError("Term not found")
    return t


async def create_term(db: AsyncSession, payload: TermCreate, today: Optional[date] = None) -> TermCreateResponse:
    term = validate_term(payload.term)
    academic_year = payload.academic_year.strip()
    _validate_dates(payload.start_date, payload.end_date)
    if await get_term_dates(db, academic_year, term):
        raise ConflictError(f"Term {term} already exists for academic year {academic_year}")

    t = TermDates(academic_year=academic_year, term=term, start_date=payload.start_date, end_date=payload.end_date)
    db.add(t)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Term {term} already exists for academic year {academic_year}")
    await db.refresh(t)
    response = _to_response(t, today)

    created = 0
    try:
        created = await create_statements_for_term(db, t, today)
    except ServiceError as e:
        await db.rollback()
        logger.error("Statement propagation failed for %s - %s: %s", academic_year, term, e.message)
    return TermCreateResponse(term=response, statements_created=created)


async def list_terms(
    db: AsyncSession,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> List[TermResponse]:
    stmt = select(TermDates)
    if academic_year:
        stmt = stmt.where(TermDates.academic_year == academic_year.strip())
    stmt = stmt.order_by(TermDates.academic_year.desc(), TermDates.term)
    result = await db.execute(stmt)
    return [_to_response(t, today) for t in result.scalars().all()]


async def get_term(db: AsyncSession, term_id, today: Optional[date] = None) -> TermResponse:
    return _to_response(await _get_term(db, term_id), today)


async def get_term_by_year_and_term(
    db: AsyncSession,
    academic_year: str,
    term: str,
    today: Optional[date] = None,
) -> TermResponse:
    term = validate_term(term)
    t = await get_term_dates(db, academic_year, term)
    if not t:
        raise NotFoundError(f"Term {term} not found for academic year {academic_year}")
    return _to_response(t, today)


async def list_active_terms(db: AsyncSession, today: Optional[date] = None) -> List[TermResponse]:
    return [_to_response(t, today) for t in await get_active_terms(db, today)]


async def update_term(
    db: AsyncSession,
    term_id,
    payload: TermUpdate,
    today: Optional[date] = None,
) -> TermUpdateResponse:
    """Apply the edit, then recompute every statement of the term. A failed recompute is logged only."""
    t = await _get_term(db, term_id)
    academic_year = payload.academic_year.strip() if payload.academic_year else t.academic_year
    term = validate_term(payload.term) if payload.term else t.term
    if (academic_year, term) != (t.academic_year, t.term) and await get_term_dates(db, academic_year, term):
        raise ConflictError(f"Term {term} already exists for academic year {academic_year}")
    start_date = payload.start_date or t.start_date
    end_date = payload.end_date or t.end_date
    _validate_dates(start_date, end_date)

    t.academic_year = academic_year
    t.term = term
    t.start_date = start_date
    t.end_date = end_date
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("This academic year and term combination already exists")
    await db.refresh(t)
    response = _to_response(t, today)

    recalculated: Optional[int] = None
    try:
        recalculated = await recompute_all_for_term(db, academic_year, term)
        logger.info("Term updated and %s student balances recalculated", recalculated)
    except ServiceError as e:
        await db.rollback()
        logger.error("Failed to update student balances for %s - %s: %s", academic_year, term, e.message)
    return TermUpdateResponse(term=response, statements_recalculated=recalculated)


async def delete_term(db: AsyncSession, term_id) -> None:
    t = await _get_term(db, term_id)
    statement_count = (
        await db.execute(
            select(func.count(FeeStatement.id)).where(
                FeeStatement.academic_year == t.academic_year,
                FeeStatement.term == t.term,
            )
        )
    ).scalar() or 0
    if statement_count:
        raise ValidationError("Cannot delete a term that has fee statements")
    await db.delete(t)
    await db.commit()
