"""Subject model representing the course catalogue."""

from typing import List

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from academia.models.base import BaseModel


class Subject(BaseModel):
    """Subject offered for enrollment.

    The number of enrolled students is derived from the ``enrollments``
    table; only the capacity is stored.

    Attributes:
        name: Name of the subject (e.g., "Linear Algebra")
        credits: Credits awarded for the subject
        schedule: Free-text schedule (e.g., "Mon/Wed 10:00-12:00")
        description: Longer description shown in the catalogue
        capacity: Maximum simultaneous enrollments
        professor_id: Owning professor (exactly one)
        prerequisites: Ids of subjects that should be taken first
        is_active: Inactive subjects are kept for history but closed for enrollment
    """

    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    schedule: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    professor_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("professors.id"), nullable=False, index=True
    )
    prerequisites: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )

    def __repr__(self) -> str:
        return (
            f"Subject(id={self.id!r}, name={self.name!r}, "
            f"professor_id={self.professor_id!r})"
        )
