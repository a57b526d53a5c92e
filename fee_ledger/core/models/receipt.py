import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class Receipt(Base):
    """Proof of payment issued against a fee payment. A payment with receipts cannot be deleted."""

    __tablename__ = "receipts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    receipt_number = Column(String(30), nullable=False, unique=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    fee_payment_id = Column(Uuid, ForeignKey("fee_payments.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    fee_payment = relationship("FeePayment", foreign_keys=[fee_payment_id])
