"""Selection schemas for the enrollment endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field

from academia.schemas.student import StudentDocument
from academia.schemas.subject import SubjectDocument


class SelectionRequest(BaseModel):
    """Full target selection of subject ids for a student."""

    subjects: List[str] = Field(default_factory=list)


class ToggleRequest(BaseModel):
    """Toggle one subject against a working selection.

    Attributes:
        subject_id: Subject to add or remove.
        selection: Working selection; defaults to the saved enrollment.
    """

    subject_id: str
    selection: Optional[List[str]] = None


class DecisionResponse(BaseModel):
    """Outcome of a rule evaluation."""

    accepted: bool
    reason: str
    message: str
    selection: List[str]
    total_credits: int
    remaining_credits: int


class SelectionSummary(BaseModel):
    """Saved selection of a student with its derived totals."""

    student_id: str
    subjects: List[str]
    total_credits: int
    remaining_credits: int
    max_subjects: int


class SelectionResultResponse(BaseModel):
    """Result of a saved selection."""

    student: StudentDocument
    added: List[str]
    removed: List[str]
    subjects: List[SubjectDocument]
