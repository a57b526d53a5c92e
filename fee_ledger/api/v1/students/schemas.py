from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.core.schemas import FeeStatementResponse


class StudentCreate(BaseModel):
    admission_number: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    class_id: UUID


class StudentUpdate(BaseModel):
    """Changing class_id re-points the student's active-term statements at the new class fee."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    class_id: Optional[UUID] = None
    status: Optional[str] = Field(None, description="active, inactive")
    changed_by: Optional[UUID] = None


class StudentResponse(BaseModel):
    id: UUID
    admission_number: str
    full_name: str
    class_id: UUID
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentEnrolResponse(BaseModel):
    student: StudentResponse
    statements: List[FeeStatementResponse] = []


class StudentUpdateResponse(BaseModel):
    student: StudentResponse
    updated_statements: List[FeeStatementResponse] = []
