"""
Reference number allocation for payments (FEE-000123) and receipts (RCP-000123).

The sequence lives in the reference_counters row for each prefix and is advanced
with a single UPDATE, so the database serialises concurrent increments across
processes. Before each increment the counter is floored at the highest reference
already stored, which keeps it ahead of rows written outside this allocator.
"""

import asyncio
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ConflictError
from fee_ledger.core.models import FeePayment, Receipt, ReferenceCounter

logger = get_logger(__name__)

# Single-flight within the process; the counter row does the cross-process work.
_allocation_lock = asyncio.Lock()


def format_reference(prefix: str, number: int, width: Optional[int] = None) -> str:
    width = width or settings.reference_width
    return f"{prefix}-{number:0{width}d}"


def parse_reference(reference: Optional[str]) -> int:
    """Numeric suffix of PREFIX-000123; 0 when absent or malformed."""
    if not reference or "-" not in reference:
        return 0
    suffix = reference.rsplit("-", 1)[1]
    return int(suffix) if suffix.isdigit() else 0


def _reference_column(prefix: str):
    if prefix == settings.receipt_prefix:
        return Receipt.receipt_number
    return FeePayment.reference_number


async def _highest_stored(db: AsyncSession, prefix: str) -> int:
    # Fixed-width zero padding makes the lexicographic max the numeric max.
    column = _reference_column(prefix)
    last = (
        await db.execute(select(func.max(column)).where(column.like(f"{prefix}-%")))
    ).scalar()
    return parse_reference(last)


async def _ensure_counter(db: AsyncSession, prefix: str, seed: int) -> None:
    existing = await db.get(ReferenceCounter, prefix)
    if existing is not None:
        return
    db.add(ReferenceCounter(name=prefix, value=seed))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Reference sequence was initialised concurrently, retry the operation")
    logger.info("Seeded %s reference counter at %s", prefix, seed)


async def next_reference(db: AsyncSession, prefix: Optional[str] = None) -> str:
    """Issue the next reference for prefix. Strictly increasing, never reused."""
    prefix = prefix or settings.reference_prefix
    async with _allocation_lock:
        floor = await _highest_stored(db, prefix)
        await _ensure_counter(db, prefix, floor)
        await db.execute(
            update(ReferenceCounter)
            .where(ReferenceCounter.name == prefix)
            .values(
                value=case((ReferenceCounter.value < floor, floor), else_=ReferenceCounter.value) + 1
            )
            .execution_options(synchronize_session=False)
        )
        value = (
            await db.execute(
                select(ReferenceCounter.value)
                .where(ReferenceCounter.name == prefix)
            )
        ).scalar_one()
    return format_reference(prefix, int(value))


async def next_receipt_number(db: AsyncSession) -> str:
    return await next_reference(db, settings.receipt_prefix)
