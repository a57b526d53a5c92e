import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, String, UniqueConstraint, Uuid

from fee_ledger.db.session import Base


class TermDates(Base):
    """
    Start/end dates of one term of an academic year.
    Whether a term is active is derived from the dates on every read (see core.terms);
    it is never stored.
    """

    __tablename__ = "term_dates"
    __table_args__ = (
        UniqueConstraint("academic_year", "term", name="uq_term_dates_year_term"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    academic_year = Column(String(20), nullable=False)  # e.g. "2026-2027"
    term = Column(String(10), nullable=False)  # term1, term2, term3
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
