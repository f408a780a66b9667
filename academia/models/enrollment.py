"""Enrollment model: the student-to-subject edge."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from academia.models.base import BaseModel


class Enrollment(BaseModel):
    """A student holding a seat in a subject for the current semester.

    This table is the only place enrollment is recorded. Student subject
    lists, credit totals and subject ``enrolled`` counts are all computed
    from it.
    """

    __tablename__ = "enrollments"

    student_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_enrollment_pair"),
    )

    def __repr__(self) -> str:
        return (
            f"Enrollment(student_id={self.student_id!r}, "
            f"subject_id={self.subject_id!r})"
        )
