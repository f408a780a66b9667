"""Professor schemas for API request/response models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProfessorCreate(BaseModel):
    """Schema for creating a professor."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    max_subjects: int = Field(default=2, ge=0)
    is_active: bool = True


class ProfessorUpdate(BaseModel):
    """Schema for updating professor fields."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(
        default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$"
    )
    max_subjects: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ProfessorDocument(BaseModel):
    """Professor as delivered to clients.

    Attributes:
        subjects: Ids of the subjects the professor owns.
    """

    id: str
    name: str
    email: str
    max_subjects: int
    is_active: bool
    subjects: List[str] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DistributionReport(BaseModel):
    """Result of checking how subjects are spread over professors."""

    is_valid: bool
    errors: List[str] = Field(default_factory=list)
