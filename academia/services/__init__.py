"""Business logic services package."""

from academia.services.base import BaseService
from academia.services.enrollment_service import EnrollmentService, SelectionOutcome
from academia.services.professor_service import ProfessorService
from academia.services.student_service import StudentService
from academia.services.subject_service import SubjectService

__all__ = [
    "BaseService",
    "EnrollmentService",
    "ProfessorService",
    "SelectionOutcome",
    "StudentService",
    "SubjectService",
]
