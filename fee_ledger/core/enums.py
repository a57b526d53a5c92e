from enum import Enum


class Term(str, Enum):
    term1 = "term1"
    term2 = "term2"
    term3 = "term3"


class StatementStatus(str, Enum):
    pending = "pending"
    completed = "completed"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class StudentStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class TermStatus(str, Enum):
    active = "active"
    inactive = "inactive"
