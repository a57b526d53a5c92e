"""Term helpers: the active-term predicate and academic year/term parsing."""

from datetime import date
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.enums import Term, TermStatus
from fee_ledger.core.exceptions import ValidationError
from fee_ledger.core.models import TermDates

VALID_TERMS = tuple(t.value for t in Term)


class TermWindow(Protocol):
    start_date: date
    end_date: date


def is_term_active(term: TermWindow, today: Optional[date] = None) -> bool:
    """A term is active while today falls inside [start_date, end_date]. Never stored."""
    today = today or date.today()
    return term.start_date <= today <= term.end_date


def term_status(term: TermWindow, today: Optional[date] = None) -> str:
    return TermStatus.active.value if is_term_active(term, today) else TermStatus.inactive.value


def validate_term(term: Optional[str]) -> str:
    value = (term or "").strip().lower()
    if value not in VALID_TERMS:
        raise ValidationError(f"term must be one of: {', '.join(VALID_TERMS)}")
    return value


def split_academic_year_term(value: str) -> Tuple[str, str]:
    """
    Split a combined period such as "2026-2027-term2" into ("2026-2027", "term2").
    The academic year itself contains a dash, so split at the last one.
    """
    raw = (value or "").strip()
    idx = raw.rfind("-")
    if idx <= 0:
        raise ValidationError(f"Could not parse academic year and term from '{value}'")
    return raw[:idx], validate_term(raw[idx + 1:])


def term_index(term: str) -> int:
    return VALID_TERMS.index(term)


async def get_active_terms(db: AsyncSession, today: Optional[date] = None) -> List[TermDates]:
    """All terms whose window contains today, oldest first. Zero, one or many may be active."""
    today = today or date.today()
    result = await db.execute(
        select(TermDates).order_by(TermDates.academic_year, TermDates.term)
    )
    return [t for t in result.scalars().all() if is_term_active(t, today)]
