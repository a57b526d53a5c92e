"""Fee statements router: create, bulk create, adjust, delete, student summary."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError
from fee_ledger.core.schemas import FeeStatementResponse, MessageResponse
from fee_ledger.db.session import get_db

from .schemas import (
    BulkFeeStatementCreate,
    BulkFeeStatementResponse,
    FeeStatementAdjust,
    FeeStatementCreate,
    StudentFeeSummary,
)
from . import service

router = APIRouter(prefix="/api/v1/statements", tags=["statements"])


@router.post("", response_model=FeeStatementResponse, status_code=status.HTTP_201_CREATED)
async def create_statement(
    payload: FeeStatementCreate,
    changed_by: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> FeeStatementResponse:
    try:
        return await service.create_statement(db, payload, changed_by=changed_by)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/bulk", response_model=BulkFeeStatementResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_statements(
    payload: BulkFeeStatementCreate,
    db: AsyncSession = Depends(get_db),
) -> BulkFeeStatementResponse:
    try:
        return await service.bulk_create_statements(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/student/{student_id}", response_model=List[FeeStatementResponse])
async def list_student_statements(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[FeeStatementResponse]:
    try:
        return await service.list_student_statements(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/student/{student_id}/summary", response_model=StudentFeeSummary)
async def student_fee_summary(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentFeeSummary:
    try:
        return await service.get_student_fee_summary(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{statement_id}", response_model=FeeStatementResponse)
async def adjust_statement(
    statement_id: UUID,
    payload: FeeStatementAdjust,
    db: AsyncSession = Depends(get_db),
) -> FeeStatementResponse:
    try:
        return await service.adjust_statement(db, statement_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{statement_id}", response_model=MessageResponse)
async def delete_statement(
    statement_id: UUID,
    changed_by: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_statement(db, statement_id, changed_by=changed_by)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Fee statement deleted successfully")
