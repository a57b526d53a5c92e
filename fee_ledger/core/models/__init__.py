from fee_ledger.core.models.school_class import SchoolClass
from fee_ledger.core.models.student import Student
from fee_ledger.core.models.term_dates import TermDates
from fee_ledger.core.models.class_fee import ClassFee
from fee_ledger.core.models.fee_statement import FeeStatement
from fee_ledger.core.models.fee_payment import FeePayment
from fee_ledger.core.models.receipt import Receipt
from fee_ledger.core.models.reference_counter import ReferenceCounter
from fee_ledger.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "SchoolClass",
    "Student",
    "TermDates",
    "ClassFee",
    "FeeStatement",
    "FeePayment",
    "Receipt",
    "ReferenceCounter",
    "FeeAuditLog",
]
