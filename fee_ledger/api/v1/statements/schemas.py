"""Fee statement schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.core.schemas import FeeStatementResponse


class FeeStatementCreate(BaseModel):
    student_id: UUID
    academic_year: str = Field(..., min_length=1, max_length=20, description="e.g. 2026-2027")
    term: str = Field(..., description="term1, term2, term3")
    term_start_date: Optional[date] = None
    term_end_date: Optional[date] = None
    due_date: Optional[date] = None


class BulkFeeStatementCreate(BaseModel):
    class_id: UUID
    academic_year: str = Field(..., min_length=1, max_length=20)
    term: str


class BulkCreatedItem(BaseModel):
    student_id: UUID
    student_name: str
    statement_id: UUID
    total_payable: Decimal


class BulkCreateError(BaseModel):
    student_id: UUID
    student_name: str
    error: str


class BulkFeeStatementResponse(BaseModel):
    message: str
    created_statements: List[BulkCreatedItem] = Field(default_factory=list)
    errors: List[BulkCreateError] = Field(default_factory=list)


class FeeStatementAdjust(BaseModel):
    """
    Manual adjustment. current_term_fee / previous_balance rewrite the amount owed
    (total_payable follows). amount_paid, balance_amount and status are derived
    fields: they are accepted, recorded in the audit log and then re-derived from
    the completed payments.
    """

    current_term_fee: Optional[Decimal] = Field(None, ge=0)
    previous_balance: Optional[Decimal] = Field(None, ge=0)
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    balance_amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = None
    changed_by: Optional[UUID] = None


class StudentFeeSummary(BaseModel):
    student_id: UUID
    total_statements: int
    total_payable: Decimal
    total_paid: Decimal
    total_balance: Decimal
    completed_terms: int
    pending_terms: int
    statements: List[FeeStatementResponse] = Field(default_factory=list)
