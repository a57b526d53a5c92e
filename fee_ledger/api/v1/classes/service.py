from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.exceptions import ConflictError, NotFoundError
from fee_ledger.core.models import ClassFee, SchoolClass
from fee_ledger.core.services import money, to_decimal, to_uuid
from fee_ledger.core.terms import validate_term
from fee_ledger.api.v1.statements.service import get_class_fee

from .schemas import ClassCreate, ClassFeeResponse, ClassFeeSet, ClassResponse, ClassWithFeesResponse

logger = get_logger(__name__)


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(id=c.id, name=c.name, created_at=c.created_at)


def _fee_to_response(f: ClassFee) -> ClassFeeResponse:
    return ClassFeeResponse(
        id=f.id,
        class_id=f.class_id,
        term=f.term,
        amount=to_decimal(f.amount),
        created_at=f.created_at,
        updated_at=f.updated_at,
    )


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    obj = SchoolClass(name=payload.name.strip())
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Class name already exists")
    await db.refresh(obj)
    return _class_to_response(obj)


async def list_classes(db: AsyncSession) -> List[ClassWithFeesResponse]:
    classes = (await db.execute(select(SchoolClass).order_by(SchoolClass.name))).scalars().all()
    fees = (await db.execute(select(ClassFee).order_by(ClassFee.term))).scalars().all()
    by_class = {}
    for f in fees:
        by_class.setdefault(f.class_id, []).append(_fee_to_response(f))
    return [
        ClassWithFeesResponse(id=c.id, name=c.name, created_at=c.created_at, fees=by_class.get(c.id, []))
        for c in classes
    ]


async def set_class_fee(db: AsyncSession, class_id, term: str, payload: ClassFeeSet) -> ClassFeeResponse:
    """
    Create or replace the class's fee for a term. Existing statements keep the
    fee they were opened with; only statements opened afterwards see the new amount.
    """
    class_id = to_uuid(class_id)
    term = validate_term(term)
    if not await db.get(SchoolClass, class_id):
        raise NotFoundError("Class not found")
    fee = await get_class_fee(db, class_id, term)
    if fee is None:
        fee = ClassFee(class_id=class_id, term=term, amount=money(payload.amount))
        db.add(fee)
    else:
        fee.amount = money(payload.amount)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Class fee for {term} was set concurrently, retry the operation")
    await db.refresh(fee)
    logger.info("Class fee for class %s in %s set to %s", class_id, term, fee.amount)
    return _fee_to_response(fee)
