"""Students API endpoints, including the subject selection of a student."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status

from academia.enrollment import rules
from academia.enrollment.rules import EnrollmentLimits, Reason
from academia.exceptions import (
    PermissionDeniedError,
    RecordNotFoundError,
    RuleViolationError,
)
from academia.gateway import RemoteGateway
from academia.middleware.auth import CALLER_SESSION
from academia.schemas.enrollment import (
    DecisionResponse,
    SelectionRequest,
    SelectionResultResponse,
    SelectionSummary,
    ToggleRequest,
)
from academia.schemas.student import StudentCreate, StudentDocument, StudentUpdate
from academia.utils.dependencies import get_caller, get_gateway, get_limits

# Fields a signed-in student may not change on their own record
ADMIN_ONLY_FIELDS = frozenset({"gpa", "max_credits"})

router = APIRouter(
    prefix="/students",
    tags=["Students"],
)


async def _student_or_404(gateway: RemoteGateway, student_id: str) -> StudentDocument:
    student = await gateway.students.get_by_id(student_id)
    if student is None:
        raise RecordNotFoundError("Student", student_id)
    return student


@router.get("")
async def list_students(
    search: str = Query(default="", description="Search term for name or email"),
    subject_id: Optional[str] = Query(default=None, description="Enrolled in subject"),
    professor_id: Optional[str] = Query(default=None, description="Taught by professor"),
    limit: int = Query(default=50, ge=1, le=200, description="Max search results"),
    gateway: RemoteGateway = Depends(get_gateway),
) -> list[StudentDocument]:
    """List students, newest first.

    Filters are exclusive and checked in order: subject, professor, search.
    """
    if subject_id:
        return await gateway.students.find_by_subject(subject_id)
    if professor_id:
        return await gateway.students.find_by_professor(professor_id)
    if search:
        return await gateway.students.search(search, limit)
    return await gateway.students.get_all()


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    gateway: RemoteGateway = Depends(get_gateway),
) -> StudentDocument:
    """Register a student with an empty enrollment.

    Raises:
        DuplicateRecordError: If the email is already registered.
    """
    return await gateway.students.create(**data.model_dump())


@router.get("/{student_id}")
async def get_student(
    student_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> StudentDocument:
    return await _student_or_404(gateway, student_id)


@router.patch("/{student_id}")
async def update_student(
    student_id: str,
    data: StudentUpdate,
    gateway: RemoteGateway = Depends(get_gateway),
    caller: Optional[str] = Depends(get_caller),
) -> StudentDocument:
    """Edit profile fields; enrollment changes go through the selection.

    Raises:
        PermissionDeniedError: If a signed-in student edits an admin-only field.
    """
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if caller == CALLER_SESSION:
        locked = sorted(ADMIN_ONLY_FIELDS & fields.keys())
        if locked:
            raise PermissionDeniedError(
                f"Only administrators may change: {', '.join(locked)}"
            )
    return await gateway.students.update(student_id, **fields)


@router.delete("/{student_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> None:
    await gateway.students.delete(student_id)


@router.get("/{student_id}/selection")
async def get_selection(
    student_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
    limits: EnrollmentLimits = Depends(get_limits),
) -> SelectionSummary:
    """Saved selection of a student with credit totals."""
    student = await _student_or_404(gateway, student_id)
    subjects = {subject.id: subject for subject in await gateway.subjects.get_all()}
    return SelectionSummary(
        student_id=student.id,
        subjects=student.subjects,
        total_credits=rules.total_credits(student.subjects, subjects, limits),
        remaining_credits=rules.remaining_credits(
            student, student.subjects, subjects, limits
        ),
        max_subjects=limits.max_subjects,
    )


@router.post("/{student_id}/selection/toggle")
async def preview_toggle(
    student_id: str,
    data: ToggleRequest,
    gateway: RemoteGateway = Depends(get_gateway),
    limits: EnrollmentLimits = Depends(get_limits),
) -> DecisionResponse:
    """Evaluate one toggle against a working selection without saving it."""
    student = await _student_or_404(gateway, student_id)
    subjects = {subject.id: subject for subject in await gateway.subjects.get_all()}
    professors = {
        professor.id: professor for professor in await gateway.professors.get_all()
    }
    selection = frozenset(
        student.subjects if data.selection is None else data.selection
    )
    decision = rules.toggle(
        student, data.subject_id, selection, subjects, limits, professors
    )
    return DecisionResponse(
        accepted=decision.accepted,
        reason=decision.reason.value,
        message=decision.message,
        selection=sorted(decision.selection),
        total_credits=rules.total_credits(decision.selection, subjects, limits),
        remaining_credits=rules.remaining_credits(
            student, decision.selection, subjects, limits
        ),
    )


@router.put("/{student_id}/selection")
async def save_selection(
    student_id: str,
    data: SelectionRequest,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SelectionResultResponse:
    """Replace the student's enrollment in one transaction.

    Raises:
        RuleViolationError: If the selection is empty.
        SelectionRejectedError: If the selection breaks an enrollment rule.
    """
    if not data.subjects:
        raise RuleViolationError(
            Reason.EMPTY_SELECTION.value, "Select at least one subject before saving."
        )
    result = await gateway.save_selection(student_id, data.subjects)
    return SelectionResultResponse(
        student=result.student,
        added=result.added,
        removed=result.removed,
        subjects=result.subjects,
    )


@router.post("/{student_id}/subjects/{subject_id}")
async def enroll(
    student_id: str,
    subject_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SelectionResultResponse:
    """Add one subject to the saved enrollment.

    Raises:
        SelectionRejectedError: If the enrollment would break a rule.
    """
    result = await gateway.enroll(student_id, subject_id)
    return SelectionResultResponse(
        student=result.student,
        added=result.added,
        removed=result.removed,
        subjects=result.subjects,
    )


@router.delete("/{student_id}/subjects/{subject_id}")
async def unenroll(
    student_id: str,
    subject_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SelectionResultResponse:
    """Drop one subject from the saved enrollment; a no-op if not held."""
    result = await gateway.unenroll(student_id, subject_id)
    return SelectionResultResponse(
        student=result.student,
        added=result.added,
        removed=result.removed,
        subjects=result.subjects,
    )
