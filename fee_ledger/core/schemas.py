from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class FeeStatementResponse(BaseModel):
    """Ledger row for one student, academic year and term."""

    id: UUID
    student_id: UUID
    academic_year: str
    term: str
    student_class_name: Optional[str] = None
    current_term_fee: Decimal
    previous_balance: Decimal
    total_payable: Decimal
    amount_paid: Decimal
    balance_amount: Decimal
    status: str
    term_start_date: Optional[date] = None
    term_end_date: Optional[date] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeePaymentResponse(BaseModel):
    id: UUID
    reference_number: str
    student_id: UUID
    fee_statement_id: UUID
    class_fee_id: Optional[UUID] = None
    amount: Decimal
    payment_method: str
    status: str
    folded_by_class_change: bool = False
    payment_date: datetime
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    student_class_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
