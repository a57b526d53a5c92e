"""Balance recalculation and sweep schedule schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StatementFailure(BaseModel):
    statement_id: UUID
    academic_year: str
    term: str
    reason: str


class TermRecalculationResult(BaseModel):
    """Outcome for one term. status: success, partial (some statements failed) or failed."""

    academic_year: str
    term: str
    count: int = 0
    statements_created: int = 0
    status: str = "success"
    error: Optional[str] = None
    failures: List[StatementFailure] = Field(default_factory=list)


class RecalculationSummary(BaseModel):
    total_updated: int
    results: List[TermRecalculationResult] = Field(default_factory=list)


class TermRecalculateRequest(BaseModel):
    academic_year: str = Field(..., min_length=1, max_length=20, description="e.g. 2026-2027")
    term: str = Field(..., description="term1, term2, term3")


class YearRecalculateRequest(BaseModel):
    academic_year: str = Field(..., min_length=1, max_length=20)


class TermRecalculateResponse(BaseModel):
    academic_year: str
    term: str
    updated_count: int


class ScheduleStartRequest(BaseModel):
    interval_minutes: Optional[int] = Field(None, description="1 to 1440; defaults to SWEEP_INTERVAL_MINUTES")


class ScheduleStatusResponse(BaseModel):
    running: bool
    message: str
    interval_minutes: Optional[int] = None
    last_run_at: Optional[datetime] = None
    last_total_updated: Optional[int] = None
    last_failure_count: Optional[int] = None
