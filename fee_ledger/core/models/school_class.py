import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from fee_ledger.db.session import Base


class SchoolClass(Base):
    """A class (grade/stream). Fees are configured per class per term."""

    __tablename__ = "classes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
