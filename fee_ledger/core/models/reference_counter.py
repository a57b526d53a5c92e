"""Reference counter: atomic sequence row per reference prefix (FEE, RCP)."""

from sqlalchemy import BigInteger, Column, String

from fee_ledger.db.session import Base


class ReferenceCounter(Base):
    __tablename__ = "reference_counters"

    name = Column(String(20), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)
