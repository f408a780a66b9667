"""Student schemas for API request/response models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    """Schema for registering a student.

    Attributes:
        name: Full name of the student.
        email: Contact email, unique across students.
        phone: Optional phone number.
        semester: Semester number (1-10).
    """

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str = Field(default="", max_length=50)
    semester: int = Field(default=1, ge=1, le=10)


class StudentUpdate(BaseModel):
    """Schema for profile edits; only provided fields change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(
        default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$"
    )
    phone: Optional[str] = Field(default=None, max_length=50)
    semester: Optional[int] = Field(default=None, ge=1, le=10)
    gpa: Optional[float] = Field(default=None, ge=0)
    max_credits: Optional[int] = Field(default=None, ge=0)


class StudentDocument(BaseModel):
    """Student as delivered to clients, with derived enrollment fields.

    Attributes:
        subjects: Ids of enrolled subjects.
        professors: Distinct ids of the professors of those subjects.
        credits: Sum of the credits of the enrolled subjects.
        version: Monotonic version used to drop stale snapshots.
    """

    id: str
    name: str
    email: str
    phone: str
    semester: int
    gpa: float
    max_credits: int
    subjects: List[str] = Field(default_factory=list)
    professors: List[str] = Field(default_factory=list)
    credits: int = 0
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
