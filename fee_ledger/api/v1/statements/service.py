"""
Fee statements: creation (explicit, bulk, and propagated from active terms),
class-change rewrite, manual adjustment and per-student summary.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.enums import PaymentStatus, StatementStatus, StudentStatus
from fee_ledger.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from fee_ledger.core.locks import student_lock
from fee_ledger.core.models import ClassFee, FeePayment, FeeStatement, SchoolClass, Student, TermDates
from fee_ledger.core.schemas import FeeStatementResponse
from fee_ledger.core.services import (
    ZERO,
    find_statement,
    get_student,
    log_fee_audit,
    money,
    statement_snapshot,
    statement_to_response,
    to_decimal,
    to_uuid,
)
from fee_ledger.core.terms import VALID_TERMS, get_active_terms, is_term_active, term_index, validate_term
from fee_ledger.api.v1.balances.service import recompute_statement

from .schemas import (
    BulkCreatedItem,
    BulkCreateError,
    BulkFeeStatementCreate,
    BulkFeeStatementResponse,
    FeeStatementAdjust,
    FeeStatementCreate,
    StudentFeeSummary,
)

logger = get_logger(__name__)


async def get_class_fee(db: AsyncSession, class_id: UUID, term: str) -> Optional[ClassFee]:
    result = await db.execute(
        select(ClassFee).where(ClassFee.class_id == class_id, ClassFee.term == term)
    )
    return result.scalar_one_or_none()


async def get_class_name(db: AsyncSession, class_id: UUID) -> Optional[str]:
    cl = await db.get(SchoolClass, class_id)
    return cl.name if cl else None


async def get_term_dates(db: AsyncSession, academic_year: str, term: str) -> Optional[TermDates]:
    result = await db.execute(
        select(TermDates).where(TermDates.academic_year == academic_year, TermDates.term == term)
    )
    return result.scalar_one_or_none()


async def _prior_period_balance(db: AsyncSession, student_id: UUID, academic_year: str, term: str) -> Decimal:
    """Balance of the most recent earlier statement in the same academic year (0 if none)."""
    prev = (
        await db.execute(
            select(FeeStatement)
            .where(
                FeeStatement.student_id == student_id,
                FeeStatement.academic_year == academic_year,
                FeeStatement.term < term,
            )
            .order_by(FeeStatement.term.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    return money(prev.balance_amount) if prev else ZERO


async def _carry_over_balance(db: AsyncSession, student_id: UUID, academic_year: str, term: str) -> Decimal:
    """
    Arrears carried into an explicitly created statement: for term2/term3 the
    previous term's balance; for term1 the outstanding balances of earlier years.
    """
    if term_index(term) > 0:
        prev_term = VALID_TERMS[term_index(term) - 1]
        prev = await find_statement(db, student_id, academic_year, prev_term)
        return max(ZERO, money(prev.balance_amount)) if prev else ZERO
    total = (
        await db.execute(
            select(func.coalesce(func.sum(FeeStatement.balance_amount), 0)).where(
                FeeStatement.student_id == student_id,
                FeeStatement.academic_year < academic_year,
                FeeStatement.balance_amount > 0,
            )
        )
    ).scalar() or ZERO
    return money(total)


def _new_statement(
    student_id: UUID,
    class_name: Optional[str],
    academic_year: str,
    term: str,
    current_term_fee: Decimal,
    previous_balance: Decimal,
    term_start_date: Optional[date] = None,
    term_end_date: Optional[date] = None,
    due_date: Optional[date] = None,
) -> FeeStatement:
    total_payable = money(previous_balance) + money(current_term_fee)
    return FeeStatement(
        student_id=student_id,
        academic_year=academic_year,
        term=term,
        student_class_name=class_name,
        current_term_fee=money(current_term_fee),
        previous_balance=money(previous_balance),
        total_payable=total_payable,
        amount_paid=ZERO,
        balance_amount=total_payable,
        status=StatementStatus.completed.value if total_payable == ZERO else StatementStatus.pending.value,
        term_start_date=term_start_date,
        term_end_date=term_end_date,
        due_date=due_date or term_end_date,
    )


async def _add_statement(db: AsyncSession, st: FeeStatement, changed_by: Optional[UUID] = None) -> FeeStatement:
    db.add(st)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Fee statement already exists for {st.academic_year} {st.term}")
    await log_fee_audit(db, "student_fee_statements", st.id, "CREATE", None, statement_snapshot(st), changed_by)
    return st


async def open_statement(
    db: AsyncSession,
    student: Student,
    term_dates: TermDates,
    fee: ClassFee,
    previous_balance: Decimal = ZERO,
    changed_by: Optional[UUID] = None,
) -> FeeStatement:
    st = _new_statement(
        student.id,
        await get_class_name(db, student.class_id),
        term_dates.academic_year,
        term_dates.term,
        to_decimal(fee.amount),
        previous_balance,
        term_start_date=term_dates.start_date,
        term_end_date=term_dates.end_date,
    )
    await _add_statement(db, st, changed_by)
    logger.info("Fee statement created for student %s - %s %s", student.id, st.academic_year, st.term)
    return st


async def ensure_term_statement(db: AsyncSession, student: Student, term_dates: TermDates) -> Optional[FeeStatement]:
    """
    Create the statement of student for term_dates unless it exists already.
    Skips (returns None) when the statement exists or the class has no fee for the term.
    """
    existing = await find_statement(db, student.id, term_dates.academic_year, term_dates.term)
    if existing:
        logger.debug("Fee statement already exists for student %s in %s %s", student.id, term_dates.academic_year, term_dates.term)
        return None
    fee = await get_class_fee(db, student.class_id, term_dates.term)
    if fee is None:
        logger.info("No class fee found for class %s and term %s", student.class_id, term_dates.term)
        return None
    previous_balance = await _prior_period_balance(db, student.id, term_dates.academic_year, term_dates.term)
    return await open_statement(db, student, term_dates, fee, previous_balance)


async def create_statements_for_active_terms(
    db: AsyncSession,
    student_id,
    today: Optional[date] = None,
) -> List[FeeStatementResponse]:
    """Give the student a statement for every active term that lacks one. Idempotent per period."""
    student = await get_student(db, student_id)
    active_terms = await get_active_terms(db, today)
    if not active_terms:
        logger.info("No active terms found")
        return []
    created: List[FeeStatement] = []
    async with student_lock(student.id):
        for term_dates in active_terms:
            st = await ensure_term_statement(db, student, term_dates)
            if st is not None:
                created.append(st)
        await db.commit()
    return [statement_to_response(s) for s in created]


async def create_statements_for_term(
    db: AsyncSession,
    term_dates: TermDates,
    today: Optional[date] = None,
) -> int:
    """A term became known: create its statement for every active student, when the term is active."""
    if not is_term_active(term_dates, today):
        return 0
    students = (
        await db.execute(select(Student).where(Student.status == StudentStatus.active.value))
    ).scalars().all()
    count = 0
    for student in students:
        async with student_lock(student.id):
            if await ensure_term_statement(db, student, term_dates) is not None:
                count += 1
    await db.commit()
    logger.info("Created %s fee statements for %s - %s", count, term_dates.academic_year, term_dates.term)
    return count


async def apply_class_change(
    db: AsyncSession,
    student_id,
    new_class_id,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[FeeStatementResponse]:
    """
    Re-point the student's active-term statements at the new class's fee.
    The outstanding balance becomes the new total and paid resets to zero:
    the debt is kept, the payment attribution for the term is not. Payments
    counted so far are marked folded_by_class_change and stop counting. The
    old figures are kept in the audit log.
    """
    student = await get_student(db, student_id)
    new_class_id = to_uuid(new_class_id)
    new_class = await db.get(SchoolClass, new_class_id)
    if not new_class:
        raise NotFoundError("Class not found")

    updated: List[FeeStatement] = []
    async with student_lock(student.id):
        for term_dates in await get_active_terms(db, today):
            st = await find_statement(db, student.id, term_dates.academic_year, term_dates.term)
            if st is None:
                logger.info("No fee statement found for student %s in %s", student.id, term_dates.term)
                continue
            fee = await get_class_fee(db, new_class_id, term_dates.term)
            if fee is None:
                logger.info("No class fee found for class %s and term %s", new_class_id, term_dates.term)
                continue

            st = await recompute_statement(db, st.id)
            old = statement_snapshot(st)
            new_total = money(st.balance_amount)
            folded = (
                await db.execute(
                    select(FeePayment).where(
                        FeePayment.fee_statement_id == st.id,
                        FeePayment.status == PaymentStatus.completed.value,
                        FeePayment.folded_by_class_change.is_(False),
                    )
                )
            ).scalars().all()
            for pt in folded:
                pt.folded_by_class_change = True
            st.student_class_name = new_class.name
            st.current_term_fee = money(fee.amount)
            st.total_payable = new_total
            st.amount_paid = ZERO
            st.balance_amount = new_total
            st.status = StatementStatus.pending.value
            await db.flush()
            await log_fee_audit(
                db, "student_fee_statements", st.id, "CLASS_CHANGE", old,
                {
                    **statement_snapshot(st),
                    "class_id": str(new_class_id),
                    "folded_payments": [pt.reference_number for pt in folded],
                },
                changed_by,
            )
            updated.append(st)
            logger.info(
                "Fee statement updated for student %s in %s: new class = %s, totalPayable = %s",
                student.id, term_dates.term, new_class.name, new_total,
            )
        await db.commit()
    return [statement_to_response(s) for s in updated]


async def create_statement(
    db: AsyncSession,
    payload: FeeStatementCreate,
    changed_by: Optional[UUID] = None,
) -> FeeStatementResponse:
    term = validate_term(payload.term)
    academic_year = payload.academic_year.strip()
    student = await get_student(db, payload.student_id)

    async with student_lock(student.id):
        if await find_statement(db, student.id, academic_year, term):
            raise ConflictError(f"Fee statement already exists for {student.full_name} in {academic_year} {term}")
        fee = await get_class_fee(db, student.class_id, term)
        term_dates = await get_term_dates(db, academic_year, term)
        st = _new_statement(
            student.id,
            await get_class_name(db, student.class_id),
            academic_year,
            term,
            to_decimal(fee.amount) if fee else ZERO,
            await _carry_over_balance(db, student.id, academic_year, term),
            term_start_date=payload.term_start_date or (term_dates.start_date if term_dates else None),
            term_end_date=payload.term_end_date or (term_dates.end_date if term_dates else None),
            due_date=payload.due_date,
        )
        await _add_statement(db, st, changed_by)
        await db.commit()
    await db.refresh(st)
    return statement_to_response(st)


async def bulk_create_statements(db: AsyncSession, payload: BulkFeeStatementCreate) -> BulkFeeStatementResponse:
    """One statement per student of the class. Per-student problems are collected, not raised."""
    term = validate_term(payload.term)
    academic_year = payload.academic_year.strip()
    school_class = await db.get(SchoolClass, payload.class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    # Plain values: a failed insert rolls the session back and expires loaded rows.
    class_id, class_name = school_class.id, school_class.name
    fee = await get_class_fee(db, class_id, term)
    current_term_fee = to_decimal(fee.amount) if fee else ZERO
    term_dates = await get_term_dates(db, academic_year, term)
    start_date = term_dates.start_date if term_dates else None
    end_date = term_dates.end_date if term_dates else None

    students = (
        await db.execute(
            select(Student.id, Student.full_name).where(Student.class_id == class_id).order_by(Student.full_name)
        )
    ).all()

    created: List[BulkCreatedItem] = []
    errors: List[BulkCreateError] = []
    for student_id, student_name in students:
        async with student_lock(student_id):
            if await find_statement(db, student_id, academic_year, term):
                errors.append(BulkCreateError(
                    student_id=student_id,
                    student_name=student_name,
                    error="Statement already exists for this term",
                ))
                continue
            try:
                st = _new_statement(
                    student_id,
                    class_name,
                    academic_year,
                    term,
                    current_term_fee,
                    await _carry_over_balance(db, student_id, academic_year, term),
                    term_start_date=start_date,
                    term_end_date=end_date,
                )
                await _add_statement(db, st)
                await db.commit()
            except ServiceError as e:
                errors.append(BulkCreateError(student_id=student_id, student_name=student_name, error=e.message))
                continue
        created.append(BulkCreatedItem(
            student_id=student_id,
            student_name=student_name,
            statement_id=st.id,
            total_payable=to_decimal(st.total_payable),
        ))

    return BulkFeeStatementResponse(
        message=f"Created {len(created)} statements, {len(errors)} errors",
        created_statements=created,
        errors=errors,
    )


async def adjust_statement(
    db: AsyncSession,
    statement_id,
    payload: FeeStatementAdjust,
) -> FeeStatementResponse:
    """Manual edit followed by recomputation, so derived fields always match the payments."""
    st = await db.get(FeeStatement, to_uuid(statement_id))
    if not st:
        raise NotFoundError("Fee statement not found")
    if payload.status is not None and payload.status not in (s.value for s in StatementStatus):
        raise ValidationError("status must be one of: pending, completed")

    async with student_lock(st.student_id):
        await db.refresh(st)
        old = statement_snapshot(st)
        if payload.current_term_fee is not None:
            st.current_term_fee = money(payload.current_term_fee)
        if payload.previous_balance is not None:
            st.previous_balance = money(payload.previous_balance)
        if payload.current_term_fee is not None or payload.previous_balance is not None:
            st.total_payable = money(st.previous_balance) + money(st.current_term_fee)
        if payload.amount_paid is not None:
            st.amount_paid = money(payload.amount_paid)
        if payload.balance_amount is not None:
            st.balance_amount = money(payload.balance_amount)
        if payload.status is not None:
            st.status = payload.status

        st = await recompute_statement(db, st.id)
        await log_fee_audit(
            db, "student_fee_statements", st.id, "ADJUST", old,
            {
                **statement_snapshot(st),
                "requested": payload.model_dump(mode="json", exclude_none=True, exclude={"changed_by"}),
            },
            payload.changed_by,
        )
        await db.commit()
    return statement_to_response(st)


async def delete_statement(db: AsyncSession, statement_id, changed_by: Optional[UUID] = None) -> None:
    st = await db.get(FeeStatement, to_uuid(statement_id))
    if not st:
        raise NotFoundError("Fee statement not found")
    payment_count = (
        await db.execute(select(func.count(FeePayment.id)).where(FeePayment.fee_statement_id == st.id))
    ).scalar() or 0
    if payment_count:
        raise ValidationError("Cannot delete statement with payments. Please delete payments first.")
    async with student_lock(st.student_id):
        await log_fee_audit(db, "student_fee_statements", st.id, "DELETE", statement_snapshot(st), None, changed_by)
        await db.delete(st)
        await db.commit()


async def list_student_statements(db: AsyncSession, student_id) -> List[FeeStatementResponse]:
    student = await get_student(db, student_id)
    result = await db.execute(
        select(FeeStatement)
        .where(FeeStatement.student_id == student.id)
        .order_by(FeeStatement.academic_year, FeeStatement.term)
    )
    return [statement_to_response(s) for s in result.scalars().all()]


async def get_student_fee_summary(db: AsyncSession, student_id) -> StudentFeeSummary:
    statements = await list_student_statements(db, student_id)
    return StudentFeeSummary(
        student_id=to_uuid(student_id),
        total_statements=len(statements),
        total_payable=sum((s.total_payable for s in statements), ZERO),
        total_paid=sum((s.amount_paid for s in statements), ZERO),
        total_balance=sum((s.balance_amount for s in statements), ZERO),
        completed_terms=sum(1 for s in statements if s.status == StatementStatus.completed.value),
        pending_terms=sum(1 for s in statements if s.status == StatementStatus.pending.value),
        statements=statements,
    )
