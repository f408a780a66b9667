"""Pydantic schemas for API request/response models."""

from academia.schemas.auth import LoginRequest
from academia.schemas.enrollment import (
    DecisionResponse,
    SelectionRequest,
    SelectionResultResponse,
    SelectionSummary,
    ToggleRequest,
)
from academia.schemas.professor import (
    DistributionReport,
    ProfessorCreate,
    ProfessorDocument,
    ProfessorUpdate,
)
from academia.schemas.student import StudentCreate, StudentDocument, StudentUpdate
from academia.schemas.subject import SubjectCreate, SubjectDocument, SubjectUpdate

__all__ = [
    "DecisionResponse",
    "LoginRequest",
    "DistributionReport",
    "ProfessorCreate",
    "ProfessorDocument",
    "ProfessorUpdate",
    "SelectionRequest",
    "SelectionResultResponse",
    "SelectionSummary",
    "StudentCreate",
    "StudentDocument",
    "StudentUpdate",
    "SubjectCreate",
    "SubjectDocument",
    "SubjectUpdate",
    "ToggleRequest",
]
