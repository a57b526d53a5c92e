"""Student fee statement: the ledger row per student per academic year and term."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import StatementStatus
from fee_ledger.db.session import Base


class FeeStatement(Base):
    """
    total_payable = previous_balance + current_term_fee, fixed at creation
    (rewritten only on class change).
    amount_paid, balance_amount and status are derived from completed payments
    by the recomputation unit; payments never write them directly.
    Payments folded in by a class change are not counted.
    version guards against lost updates from concurrent writers.
    """

    __tablename__ = "student_fee_statements"
    __table_args__ = (
        UniqueConstraint("student_id", "academic_year", "term", name="uq_statement_student_year_term"),
        CheckConstraint("status IN ('pending','completed')", name="chk_statement_status"),
        CheckConstraint("balance_amount >= 0", name="chk_statement_balance_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    term = Column(String(10), nullable=False)
    student_class_name = Column(String(100), nullable=True)

    current_term_fee = Column(Numeric(12, 2), nullable=False, default=0)
    previous_balance = Column(Numeric(12, 2), nullable=False, default=0)
    total_payable = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=StatementStatus.pending.value)  # pending, completed

    term_start_date = Column(Date, nullable=True)
    term_end_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])

    __mapper_args__ = {"version_id_col": version}
