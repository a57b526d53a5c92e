"""Fee payment: one money movement applied to exactly one statement."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import PaymentStatus
from fee_ledger.db.session import Base


class FeePayment(Base):
    """
    Only status == completed counts toward the statement's amount_paid.
    folded_by_class_change marks completed payments already absorbed into
    total_payable when the student changed class; they no longer count and
    cannot be deleted.
    """

    __tablename__ = "fee_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_number = Column(String(30), nullable=False, unique=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_statement_id = Column(
        Uuid,
        ForeignKey("student_fee_statements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    class_fee_id = Column(Uuid, ForeignKey("class_fees.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)  # cash, mpesa, bank, cheque
    status = Column(String(20), nullable=False, default=PaymentStatus.completed.value)
    folded_by_class_change = Column(Boolean, nullable=False, default=False)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid, nullable=True)  # actor who recorded it
    student_class_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])
    fee_statement = relationship("FeeStatement", foreign_keys=[fee_statement_id])
