from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TermCreate(BaseModel):
    """Term dates for one term of an academic year. (academic_year, term) is unique."""

    academic_year: str = Field(..., min_length=1, max_length=20, description="e.g. 2026-2027")
    term: str = Field(..., description="term1, term2, term3")
    start_date: date
    end_date: date = Field(..., description="Must be after start_date")


class TermUpdate(BaseModel):
    academic_year: Optional[str] = Field(None, min_length=1, max_length=20)
    term: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TermResponse(BaseModel):
    id: UUID
    academic_year: str
    term: str
    start_date: date
    end_date: date
    status: str = Field(..., description="active or inactive, derived from today's date")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TermCreateResponse(BaseModel):
    term: TermResponse
    statements_created: int = 0


class TermUpdateResponse(BaseModel):
    term: TermResponse
    statements_recalculated: Optional[int] = Field(
        None,
        description="None when the balance update for the term failed; the term change is kept.",
    )
