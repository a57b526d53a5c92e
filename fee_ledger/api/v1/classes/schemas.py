from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ClassResponse(BaseModel):
    id: UUID
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClassFeeSet(BaseModel):
    """Fee owed by every student of the class for the term. Replaces an existing fee."""

    amount: Decimal = Field(..., ge=0)


class ClassFeeResponse(BaseModel):
    id: UUID
    class_id: UUID
    term: str
    amount: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassWithFeesResponse(ClassResponse):
    fees: List[ClassFeeResponse] = []
