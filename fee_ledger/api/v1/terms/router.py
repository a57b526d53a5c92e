"""Terms router: create, list, active, get, update, delete."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError
from fee_ledger.core.schemas import MessageResponse
from fee_ledger.db.session import get_db

from .schemas import TermCreate, TermCreateResponse, TermResponse, TermUpdate, TermUpdateResponse
from . import service

router = APIRouter(prefix="/api/v1/terms", tags=["terms"])


@router.post("", response_model=TermCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_term(
    payload: TermCreate,
    db: AsyncSession = Depends(get_db),
) -> TermCreateResponse:
    try:
        return await service.create_term(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[TermResponse])
async def list_terms(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[TermResponse]:
    return await service.list_terms(db, academic_year=academic_year)


@router.get("/active", response_model=List[TermResponse])
async def list_active_terms(db: AsyncSession = Depends(get_db)) -> List[TermResponse]:
    return await service.list_active_terms(db)


@router.get("/{academic_year}/{term}", response_model=TermResponse)
async def get_term_by_year_and_term(
    academic_year: str,
    term: str,
    db: AsyncSession = Depends(get_db),
) -> TermResponse:
    try:
        return await service.get_term_by_year_and_term(db, academic_year, term)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{term_id}", response_model=TermResponse)
async def get_term(
    term_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> TermResponse:
    try:
        return await service.get_term(db, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{term_id}", response_model=TermUpdateResponse)
async def update_term(
    term_id: UUID,
    payload: TermUpdate,
    db: AsyncSession = Depends(get_db),
) -> TermUpdateResponse:
    try:
        return await service.update_term(db, term_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{term_id}", response_model=MessageResponse)
async def delete_term(
    term_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_term(db, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Term deleted successfully")
