"""Shared ledger helpers: value coercion, audit trail, common lookups and response mapping."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import NotFoundError, ValidationError
from fee_ledger.core.models import FeeAuditLog, FeePayment, FeeStatement, Student
from fee_ledger.core.schemas import FeePaymentResponse, FeeStatementResponse

ZERO = Decimal("0")


def to_uuid(val) -> Optional[UUID]:
    if val is None:
        return None
    if isinstance(val, UUID):
        return val
    try:
        return UUID(str(val))
    except ValueError:
        raise ValidationError(f"Invalid id format: {val}")


def to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def money(val) -> Decimal:
    """Two-decimal Decimal for storage and comparisons."""
    return to_decimal(val).quantize(Decimal("0.01"))


async def log_fee_audit(
    db: AsyncSession,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    log = FeeAuditLog(
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)


def statement_snapshot(st: FeeStatement) -> dict:
    return {
        "student_class_name": st.student_class_name,
        "current_term_fee": str(st.current_term_fee),
        "previous_balance": str(st.previous_balance),
        "total_payable": str(st.total_payable),
        "amount_paid": str(st.amount_paid),
        "balance_amount": str(st.balance_amount),
        "status": st.status,
    }


async def get_student(db: AsyncSession, student_id) -> Student:
    student = await db.get(Student, to_uuid(student_id))
    if not student:
        raise NotFoundError("Student not found")
    return student


async def find_statement(db: AsyncSession, student_id: UUID, academic_year: str, term: str) -> Optional[FeeStatement]:
    result = await db.execute(
        select(FeeStatement).where(
            FeeStatement.student_id == student_id,
            FeeStatement.academic_year == academic_year,
            FeeStatement.term == term,
        )
    )
    return result.scalar_one_or_none()


def statement_to_response(st: FeeStatement) -> FeeStatementResponse:
    return FeeStatementResponse(
        id=st.id,
        student_id=st.student_id,
        academic_year=st.academic_year,
        term=st.term,
        student_class_name=st.student_class_name,
        current_term_fee=to_decimal(st.current_term_fee),
        previous_balance=to_decimal(st.previous_balance),
        total_payable=to_decimal(st.total_payable),
        amount_paid=to_decimal(st.amount_paid),
        balance_amount=to_decimal(st.balance_amount),
        status=st.status,
        term_start_date=st.term_start_date,
        term_end_date=st.term_end_date,
        due_date=st.due_date,
        created_at=st.created_at,
        updated_at=st.updated_at,
    )


def payment_to_response(pt: FeePayment) -> FeePaymentResponse:
    return FeePaymentResponse(
        id=pt.id,
        reference_number=pt.reference_number,
        student_id=pt.student_id,
        fee_statement_id=pt.fee_statement_id,
        class_fee_id=pt.class_fee_id,
        amount=to_decimal(pt.amount),
        payment_method=pt.payment_method,
        status=pt.status,
        folded_by_class_change=bool(pt.folded_by_class_change),
        payment_date=pt.payment_date,
        notes=pt.notes,
        created_by=pt.created_by,
        student_class_name=pt.student_class_name,
        created_at=pt.created_at,
    )
