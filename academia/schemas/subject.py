"""Subject schemas for API request/response models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    """Schema for creating a subject.

    Attributes:
        name: Name of the subject.
        professor_id: Owning professor.
        credits: Credits awarded.
        capacity: Maximum simultaneous enrollments.
    """

    name: str = Field(..., min_length=1, max_length=255)
    professor_id: str = Field(..., min_length=1)
    credits: int = Field(default=3, ge=1)
    schedule: str = Field(default="", max_length=255)
    description: str = ""
    capacity: int = Field(default=30, ge=0)
    prerequisites: List[str] = Field(default_factory=list)
    is_active: bool = True


class SubjectUpdate(BaseModel):
    """Schema for updating subject fields."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    credits: Optional[int] = Field(default=None, ge=1)
    schedule: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    prerequisites: Optional[List[str]] = None
    is_active: Optional[bool] = None


class SubjectDocument(BaseModel):
    """Subject as delivered to clients.

    Attributes:
        enrolled: Number of students currently holding a seat.
    """

    id: str
    name: str
    credits: int
    schedule: str
    description: str
    capacity: int
    enrolled: int = 0
    professor_id: str
    prerequisites: List[str] = Field(default_factory=list)
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def has_free_seats(self) -> bool:
        return self.enrolled < self.capacity
