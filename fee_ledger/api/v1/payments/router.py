"""Payments router: allocate, list, update, delete, receipts."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError
from fee_ledger.core.schemas import FeePaymentResponse, MessageResponse
from fee_ledger.db.session import get_db

from .schemas import (
    PaymentAllocationResponse,
    PaymentCreate,
    PaymentUpdate,
    ReceiptCreate,
    RecordReceiptResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("", response_model=PaymentAllocationResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
) -> PaymentAllocationResponse:
    try:
        return await service.create_payment(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/student/{student_id}", response_model=List[FeePaymentResponse])
async def list_student_payments(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[FeePaymentResponse]:
    try:
        return await service.list_student_payments(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{payment_id}", response_model=FeePaymentResponse)
async def update_payment(
    payment_id: UUID,
    payload: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
) -> FeePaymentResponse:
    try:
        return await service.update_payment(db, payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{payment_id}", response_model=MessageResponse)
async def delete_payment(
    payment_id: UUID,
    changed_by: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_payment(db, payment_id, changed_by=changed_by)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Payment deleted successfully")


@router.post("/{payment_id}/receipts", response_model=RecordReceiptResponse, status_code=status.HTTP_201_CREATED)
async def record_receipt(
    payment_id: UUID,
    payload: ReceiptCreate,
    db: AsyncSession = Depends(get_db),
) -> RecordReceiptResponse:
    try:
        return await service.record_receipt(db, payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
