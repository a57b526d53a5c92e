"""Student lifecycle hooks into the ledger: enrolment opens statements, a class change rewrites them."""

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.app_logger import get_logger
from fee_ledger.core.enums import StudentStatus
from fee_ledger.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from fee_ledger.core.models import SchoolClass, Student
from fee_ledger.core.schemas import FeeStatementResponse
from fee_ledger.core.services import get_student
from fee_ledger.api.v1.statements.service import apply_class_change, create_statements_for_active_terms

from .schemas import StudentCreate, StudentEnrolResponse, StudentResponse, StudentUpdate, StudentUpdateResponse

logger = get_logger(__name__)


def _to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        admission_number=s.admission_number,
        full_name=s.full_name,
        class_id=s.class_id,
        status=s.status,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def enrol_student(db: AsyncSession, payload: StudentCreate, today: Optional[date] = None) -> StudentEnrolResponse:
    """
    Enrol, then open statements for every active term. A failure while opening
    statements is logged and leaves the enrolment in place.
    """
    if not await db.get(SchoolClass, payload.class_id):
        raise NotFoundError("Class not found")
    student = Student(
        admission_number=payload.admission_number.strip(),
        full_name=payload.full_name.strip(),
        class_id=payload.class_id,
        status=StudentStatus.active.value,
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Admission number {payload.admission_number} already exists")
    await db.refresh(student)
    response = _to_response(student)

    statements: List[FeeStatementResponse] = []
    try:
        statements = await create_statements_for_active_terms(db, response.id, today)
    except ServiceError as e:
        await db.rollback()
        logger.error("Error creating fee statements for student %s: %s", response.id, e.message)
    return StudentEnrolResponse(student=response, statements=statements)


async def update_student(
    db: AsyncSession,
    student_id,
    payload: StudentUpdate,
    today: Optional[date] = None,
) -> StudentUpdateResponse:
    student = await get_student(db, student_id)
    if payload.status is not None and payload.status not in (s.value for s in StudentStatus):
        raise ValidationError("status must be one of: active, inactive")
    if payload.full_name is not None:
        student.full_name = payload.full_name.strip()
    if payload.status is not None:
        student.status = payload.status

    updated: List[FeeStatementResponse] = []
    if payload.class_id is not None and payload.class_id != student.class_id:
        if not await db.get(SchoolClass, payload.class_id):
            raise NotFoundError("Class not found")
        logger.info("Student %s changing class from %s to %s", student.id, student.class_id, payload.class_id)
        student.class_id = payload.class_id
        # Commits the student change together with the statement rewrite.
        updated = await apply_class_change(db, student.id, payload.class_id, changed_by=payload.changed_by, today=today)
    else:
        await db.commit()
    await db.refresh(student)
    return StudentUpdateResponse(student=_to_response(student), updated_statements=updated)


async def get_student_detail(db: AsyncSession, student_id) -> StudentResponse:
    return _to_response(await get_student(db, student_id))


async def list_students(db: AsyncSession, class_id=None) -> List[StudentResponse]:
    stmt = select(Student)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    result = await db.execute(stmt.order_by(Student.full_name))
    return [_to_response(s) for s in result.scalars().all()]
