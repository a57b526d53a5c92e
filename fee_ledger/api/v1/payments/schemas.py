"""Payments schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.core.schemas import FeePaymentResponse, FeeStatementResponse


class PaymentTarget(BaseModel):
    """Which statement an incoming payment is aimed at. First populated field wins."""

    fee_statement_id: Optional[UUID] = None
    academic_year: Optional[str] = None
    term: Optional[str] = None
    academic_year_term: Optional[str] = Field(None, description="Combined form, e.g. 2026-2027-term2")
    class_fee_id: Optional[UUID] = None


class PaymentCreate(PaymentTarget):
    student_id: UUID
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the target statement's balance")
    payment_method: Optional[str] = Field(None, description="cash, mpesa, bank, cheque")
    notes: Optional[str] = None
    created_by: UUID


class PaymentAllocationResponse(BaseModel):
    payments: List[FeePaymentResponse]
    final_statement: FeeStatementResponse
    arrears_cleared: int
    total_allocated: Decimal
    unallocated_amount: Decimal


class PaymentUpdate(BaseModel):
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class ReceiptCreate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the payment amount")
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    description: Optional[str] = None


class ReceiptResponse(BaseModel):
    id: UUID
    receipt_number: str
    student_id: UUID
    fee_payment_id: UUID
    amount: Decimal
    payment_method: str
    payment_date: datetime
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RecordReceiptResponse(BaseModel):
    receipt: ReceiptResponse
    payment: FeePaymentResponse
    statement: Optional[FeeStatementResponse] = None
