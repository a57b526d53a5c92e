"""
Payments service: arrears-first allocation of incoming payments, payment
maintenance and receipts. Statement balances are never written here directly;
every change goes through the balance recomputation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.config import settings
from fee_ledger.core.enums import PaymentStatus, StatementStatus
from fee_ledger.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from fee_ledger.core.locks import student_lock
from fee_ledger.core.models import ClassFee, FeePayment, FeeStatement, Receipt, Student
from fee_ledger.core.reference import next_receipt_number, next_reference
from fee_ledger.core.schemas import FeePaymentResponse
from fee_ledger.core.services import (
    ZERO,
    find_statement,
    get_student,
    log_fee_audit,
    money,
    payment_to_response,
    statement_to_response,
    to_decimal,
    to_uuid,
)
from fee_ledger.core.terms import split_academic_year_term, validate_term
from fee_ledger.api.v1.balances.service import recompute_statement
from fee_ledger.api.v1.statements.service import get_class_fee, get_class_name, get_term_dates, open_statement

from .schemas import (
    PaymentAllocationResponse,
    PaymentCreate,
    PaymentTarget,
    PaymentUpdate,
    ReceiptCreate,
    ReceiptResponse,
    RecordReceiptResponse,
)

logger = get_logger(__name__)


def _payment_snapshot(pt: FeePayment) -> dict:
    return {
        "reference_number": pt.reference_number,
        "fee_statement_id": str(pt.fee_statement_id),
        "amount": str(pt.amount),
        "payment_method": pt.payment_method,
        "status": pt.status,
        "notes": pt.notes,
    }


def _receipt_to_response(rc: Receipt) -> ReceiptResponse:
    return ReceiptResponse(
        id=rc.id,
        receipt_number=rc.receipt_number,
        student_id=rc.student_id,
        fee_payment_id=rc.fee_payment_id,
        amount=to_decimal(rc.amount),
        payment_method=rc.payment_method,
        payment_date=rc.payment_date,
        description=rc.description,
        created_at=rc.created_at,
    )


async def _statement_for_period(
    db: AsyncSession,
    student: Student,
    academic_year: str,
    term: str,
    actor_id: Optional[UUID],
) -> FeeStatement:
    """Statement of the period, created on first payment from the class fee and term dates."""
    st = await find_statement(db, student.id, academic_year, term)
    if st is not None:
        return st
    term_dates = await get_term_dates(db, academic_year, term)
    if term_dates is None:
        raise NotFoundError(f"Term dates not found for {academic_year} {term}")
    fee = await get_class_fee(db, student.class_id, term)
    if fee is None:
        raise NotFoundError(f"Class fee not found for the student's class in {term}")
    logger.info("Creating fee statement for %s %s on first payment", academic_year, term)
    return await open_statement(db, student, term_dates, fee, ZERO, changed_by=actor_id)


async def resolve_target(
    db: AsyncSession,
    student: Student,
    target: PaymentTarget,
    actor_id: Optional[UUID] = None,
) -> Tuple[FeeStatement, Decimal]:
    """
    Pick the statement a payment is aimed at and the amount to use when the
    caller gave none. Order: statement id, academic year + term (explicit or
    combined), class fee, most recent pending statement.
    """
    if target.fee_statement_id is not None:
        st = await db.get(FeeStatement, target.fee_statement_id)
        if st is None:
            raise NotFoundError("Fee statement not found")
        if st.student_id != student.id:
            raise ValidationError("Fee statement does not belong to this student")
        return st, money(st.balance_amount)

    academic_year, term = None, None
    if target.academic_year and target.term:
        academic_year, term = target.academic_year.strip(), validate_term(target.term)
    elif target.academic_year_term:
        academic_year, term = split_academic_year_term(target.academic_year_term)
    if academic_year and term:
        st = await _statement_for_period(db, student, academic_year, term, actor_id)
        return st, money(st.balance_amount)

    if target.class_fee_id is not None:
        fee = await db.get(ClassFee, target.class_fee_id)
        if fee is None:
            raise NotFoundError("Class fee not found")
        st = (
            await db.execute(
                select(FeeStatement)
                .where(FeeStatement.student_id == student.id, FeeStatement.term == fee.term)
                .order_by(FeeStatement.academic_year.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        if st is None:
            raise NotFoundError(f"No fee statement found for this student in {fee.term}")
        return st, money(fee.amount)

    st = (
        await db.execute(
            select(FeeStatement)
            .where(FeeStatement.student_id == student.id, FeeStatement.status == StatementStatus.pending.value)
            .order_by(FeeStatement.academic_year.desc(), FeeStatement.term.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if st is None:
        raise NotFoundError("No fee statement found for this student. Please create a fee statement first.")
    return st, money(st.balance_amount)


async def _pending_arrears(db: AsyncSession, student_id: UUID, exclude_id: UUID) -> List[FeeStatement]:
    result = await db.execute(
        select(FeeStatement)
        .where(
            FeeStatement.student_id == student_id,
            FeeStatement.status == StatementStatus.pending.value,
            FeeStatement.balance_amount > 0,
            FeeStatement.id != exclude_id,
        )
        .order_by(FeeStatement.academic_year, FeeStatement.term)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _add_payment(
    db: AsyncSession,
    student_id: UUID,
    statement_id: UUID,
    amount: Decimal,
    payment_method: str,
    notes: Optional[str],
    actor_id: Optional[UUID],
    class_name: Optional[str],
    class_fee_id: Optional[UUID] = None,
) -> FeePayment:
    pt = FeePayment(
        reference_number=await next_reference(db),
        student_id=student_id,
        fee_statement_id=statement_id,
        class_fee_id=class_fee_id,
        amount=money(amount),
        payment_method=payment_method,
        status=PaymentStatus.completed.value,
        payment_date=datetime.now(timezone.utc),
        notes=notes,
        created_by=actor_id,
        student_class_name=class_name,
    )
    db.add(pt)
    await db.flush()
    await log_fee_audit(db, "fee_payments", pt.id, "CREATE", None, _payment_snapshot(pt), actor_id)
    return pt


async def allocate_payment(
    db: AsyncSession,
    student_id,
    target: PaymentTarget,
    amount: Optional[Decimal],
    payment_method: Optional[str],
    notes: Optional[str],
    actor_id: Optional[UUID],
) -> PaymentAllocationResponse:
    """
    Apply an incoming payment arrears-first: older pending statements are
    settled oldest period first, then what remains goes to the target
    statement. The target payment is capped at the target's balance; any
    excess is reported as unallocated_amount and not recorded.
    Runs in the student's critical section as one transaction.
    """
    student = await get_student(db, student_id)
    actor_id = to_uuid(actor_id)
    method = (payment_method or "").strip() or settings.default_payment_method

    async with student_lock(student.id):
        try:
            target_st, default_amount = await resolve_target(db, student, target, actor_id)
            amount = money(amount) if amount is not None else default_amount
            if amount <= ZERO:
                raise ValidationError("Payment amount must be greater than 0")
            class_name = await get_class_name(db, student.class_id)
            target_id = target_st.id
            target_label = f"{target_st.academic_year} - {target_st.term}"
            class_fee_id = to_uuid(target.class_fee_id)

            remaining = amount
            payments: List[FeePayment] = []
            arrears_cleared = 0
            for prev in await _pending_arrears(db, student.id, target_id):
                if remaining <= ZERO:
                    break
                prev = await recompute_statement(db, prev.id)
                balance = money(prev.balance_amount)
                if balance <= ZERO:
                    continue
                allocation = min(remaining, balance)
                pt = await _add_payment(
                    db, student.id, prev.id, allocation, method,
                    f"Payment allocated from {target_label} payment to clear {prev.academic_year} - {prev.term} arrears",
                    actor_id, class_name,
                )
                prev = await recompute_statement(db, prev.id)
                if prev.status == StatementStatus.completed.value:
                    arrears_cleared += 1
                payments.append(pt)
                remaining -= allocation
                logger.info(
                    "Allocated %s from %s to %s - %s arrears (%s)",
                    allocation, pt.reference_number, prev.academic_year, prev.term, student.id,
                )

            target_st = await recompute_statement(db, target_id)
            target_amount = min(max(ZERO, remaining), money(target_st.balance_amount))
            pt = await _add_payment(
                db, student.id, target_id, target_amount, method, notes, actor_id, class_name, class_fee_id,
            )
            payments.append(pt)
            target_st = await recompute_statement(db, target_id)
            unallocated = max(ZERO, remaining - target_amount)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Payment could not be recorded due to a concurrent update, retry the operation")
        except ServiceError:
            await db.rollback()
            raise

    if unallocated > ZERO:
        logger.warning("Payment for student %s left %s unallocated", student_id, unallocated)
    logger.info(
        "Payment of %s for student %s recorded as %s rows, target %s balance = %s",
        amount, student_id, len(payments), target_label, target_st.balance_amount,
    )
    return PaymentAllocationResponse(
        payments=[payment_to_response(p) for p in payments],
        final_statement=statement_to_response(target_st),
        arrears_cleared=arrears_cleared,
        total_allocated=amount - unallocated,
        unallocated_amount=unallocated,
    )


async def create_payment(db: AsyncSession, payload: PaymentCreate) -> PaymentAllocationResponse:
    return await allocate_payment(
        db,
        payload.student_id,
        PaymentTarget(**payload.model_dump(include=set(PaymentTarget.model_fields))),
        payload.amount,
        payload.payment_method,
        payload.notes,
        payload.created_by,
    )


async def _get_payment(db: AsyncSession, payment_id) -> FeePayment:
    pt = await db.get(FeePayment, to_uuid(payment_id))
    if not pt:
        raise NotFoundError("Payment not found")
    return pt


async def update_payment(db: AsyncSession, payment_id, payload: PaymentUpdate) -> FeePaymentResponse:
    """Metadata only; amounts and status are not editable here."""
    pt = await _get_payment(db, payment_id)
    old = _payment_snapshot(pt)
    if payload.payment_method:
        pt.payment_method = payload.payment_method.strip()
    if payload.notes:
        pt.notes = payload.notes
    await log_fee_audit(db, "fee_payments", pt.id, "UPDATE", old, _payment_snapshot(pt), None)
    await db.commit()
    await db.refresh(pt)
    return payment_to_response(pt)


async def delete_payment(db: AsyncSession, payment_id, changed_by: Optional[UUID] = None) -> None:
    pt = await _get_payment(db, payment_id)
    receipt_count = (
        await db.execute(select(func.count(Receipt.id)).where(Receipt.fee_payment_id == pt.id))
    ).scalar() or 0
    if receipt_count:
        raise ValidationError("Cannot delete payment with receipts. Please delete receipts first.")
    if pt.folded_by_class_change:
        raise ValidationError("Cannot delete a payment already carried into the statement total by a class change.")

    async with student_lock(pt.student_id):
        statement_id = pt.fee_statement_id
        await log_fee_audit(db, "fee_payments", pt.id, "DELETE", _payment_snapshot(pt), None, changed_by)
        await db.delete(pt)
        try:
            await recompute_statement(db, statement_id)
            await db.commit()
        except ServiceError:
            await db.rollback()
            raise
    logger.info("Deleted payment %s, statement %s recomputed", payment_id, statement_id)


async def record_receipt(db: AsyncSession, payment_id, payload: ReceiptCreate) -> RecordReceiptResponse:
    """Issue a receipt for the payment and mark the payment completed."""
    pt = await _get_payment(db, payment_id)
    async with student_lock(pt.student_id):
        try:
            paid_at = payload.payment_date or datetime.now(timezone.utc)
            rc = Receipt(
                receipt_number=await next_receipt_number(db),
                student_id=pt.student_id,
                fee_payment_id=pt.id,
                amount=money(payload.amount if payload.amount is not None else pt.amount),
                payment_method=(payload.payment_method or pt.payment_method),
                payment_date=paid_at,
                description=payload.description,
            )
            db.add(rc)
            old = _payment_snapshot(pt)
            pt.status = PaymentStatus.completed.value
            pt.payment_date = paid_at
            if payload.description:
                pt.notes = payload.description
            await db.flush()
            await log_fee_audit(db, "fee_payments", pt.id, "RECEIPT", old, _payment_snapshot(pt), None)
            st = await recompute_statement(db, pt.fee_statement_id)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Receipt number already issued, retry the operation")
        except ServiceError:
            await db.rollback()
            raise
    logger.info("Receipt %s issued for payment %s", rc.receipt_number, pt.reference_number)
    return RecordReceiptResponse(
        receipt=_receipt_to_response(rc),
        payment=payment_to_response(pt),
        statement=statement_to_response(st) if st else None,
    )


async def list_student_payments(db: AsyncSession, student_id) -> List[FeePaymentResponse]:
    student = await get_student(db, student_id)
    result = await db.execute(
        select(FeePayment)
        .where(FeePayment.student_id == student.id)
        .order_by(FeePayment.payment_date.desc(), FeePayment.reference_number.desc())
    )
    return [payment_to_response(p) for p in result.scalars().all()]
