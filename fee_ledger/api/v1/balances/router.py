"""Balance management router: recalculation passes and the scheduled sweep."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError
from fee_ledger.core.schemas import FeeStatementResponse, MessageResponse
from fee_ledger.db.session import get_db

from .schemas import (
    RecalculationSummary,
    ScheduleStartRequest,
    ScheduleStatusResponse,
    TermRecalculateRequest,
    TermRecalculateResponse,
    YearRecalculateRequest,
)
from .scheduler import sweep_scheduler
from . import service

router = APIRouter(prefix="/api/v1/balances", tags=["balances"])


@router.post("/statements/{statement_id}/recalculate", response_model=FeeStatementResponse)
async def recalculate_statement(
    statement_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeStatementResponse:
    try:
        return await service.recalculate_statement_balance(db, statement_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/students/{student_id}/recalculate", response_model=List[FeeStatementResponse])
async def recalculate_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[FeeStatementResponse]:
    try:
        return await service.recompute_all_for_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/terms/recalculate", response_model=TermRecalculateResponse)
async def recalculate_term(
    payload: TermRecalculateRequest,
    db: AsyncSession = Depends(get_db),
) -> TermRecalculateResponse:
    try:
        count = await service.recompute_all_for_term(db, payload.academic_year, payload.term)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return TermRecalculateResponse(academic_year=payload.academic_year, term=payload.term, updated_count=count)


@router.post("/years/recalculate", response_model=RecalculationSummary)
async def recalculate_year(
    payload: YearRecalculateRequest,
    db: AsyncSession = Depends(get_db),
) -> RecalculationSummary:
    try:
        return await service.recompute_all_for_year(db, payload.academic_year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/active-terms/recalculate", response_model=RecalculationSummary)
async def recalculate_active_terms() -> RecalculationSummary:
    """Runs the same pass as the scheduled sweep, once, outside the schedule."""
    result = await sweep_scheduler.run_once()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Balance update for active terms failed",
        )
    return result


@router.post("/schedule/start", response_model=ScheduleStatusResponse)
async def start_schedule(payload: ScheduleStartRequest) -> ScheduleStatusResponse:
    try:
        await sweep_scheduler.start(payload.interval_minutes)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return sweep_scheduler.status()


@router.post("/schedule/stop", response_model=MessageResponse)
async def stop_schedule() -> MessageResponse:
    await sweep_scheduler.stop()
    return MessageResponse(message="Scheduled balance updates stopped")


@router.get("/schedule/status", response_model=ScheduleStatusResponse)
async def schedule_status() -> ScheduleStatusResponse:
    return sweep_scheduler.status()
