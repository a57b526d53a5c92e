"""Classes router: classes and their per-term fees."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError
from fee_ledger.db.session import get_db

from .schemas import ClassCreate, ClassFeeResponse, ClassFeeSet, ClassResponse, ClassWithFeesResponse
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        return await service.create_class(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ClassWithFeesResponse])
async def list_classes(db: AsyncSession = Depends(get_db)) -> List[ClassWithFeesResponse]:
    return await service.list_classes(db)


@router.put("/{class_id}/fees/{term}", response_model=ClassFeeResponse)
async def set_class_fee(
    class_id: UUID,
    term: str,
    payload: ClassFeeSet,
    db: AsyncSession = Depends(get_db),
) -> ClassFeeResponse:
    try:
        return await service.set_class_fee(db, class_id, term, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
