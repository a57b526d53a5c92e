"""Seed rows for ledger tests."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.enums import PaymentStatus, StatementStatus
from fee_ledger.core.models import ClassFee, FeePayment, FeeStatement, SchoolClass, Student, TermDates


async def add_class(db: AsyncSession, name: str, fees: Optional[Dict[str, str]] = None) -> SchoolClass:
    school_class = SchoolClass(name=name)
    db.add(school_class)
    await db.flush()
    for term, amount in (fees or {}).items():
        db.add(ClassFee(class_id=school_class.id, term=term, amount=Decimal(amount)))
    await db.commit()
    return school_class


async def add_student(db: AsyncSession, school_class: SchoolClass, full_name: str = "Amina Otieno") -> Student:
    student = Student(
        admission_number=f"ADM-{uuid.uuid4().hex[:8]}",
        full_name=full_name,
        class_id=school_class.id,
    )
    db.add(student)
    await db.commit()
    return student


async def add_term(db: AsyncSession, academic_year: str, term: str, start_date: date, end_date: date) -> TermDates:
    term_dates = TermDates(academic_year=academic_year, term=term, start_date=start_date, end_date=end_date)
    db.add(term_dates)
    await db.commit()
    return term_dates


async def add_statement(
    db: AsyncSession,
    student: Student,
    academic_year: str,
    term: str,
    total_payable: str,
    previous_balance: str = "0",
    class_name: Optional[str] = None,
) -> FeeStatement:
    total = Decimal(total_payable)
    previous = Decimal(previous_balance)
    st = FeeStatement(
        student_id=student.id,
        academic_year=academic_year,
        term=term,
        student_class_name=class_name,
        current_term_fee=total - previous,
        previous_balance=previous,
        total_payable=total,
        amount_paid=Decimal("0"),
        balance_amount=total,
        status=StatementStatus.pending.value,
    )
    db.add(st)
    await db.commit()
    return st


async def add_payment(
    db: AsyncSession,
    statement: FeeStatement,
    amount: str,
    status: str = PaymentStatus.completed.value,
) -> FeePayment:
    """Raw payment row; the statement is not recomputed."""
    payment = FeePayment(
        reference_number=f"SEED-{uuid.uuid4().hex[:10]}",
        student_id=statement.student_id,
        fee_statement_id=statement.id,
        amount=Decimal(amount),
        payment_method="cash",
        status=status,
    )
    db.add(payment)
    await db.commit()
    return payment
