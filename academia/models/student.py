"""Student model representing enrolled learners."""

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academia.models.base import BaseModel


class Student(BaseModel):
    """Student profile and academic counters.

    Enrolled subjects, their professors and the earned credits are not stored
    here; they are derived from the ``enrollments`` table by the services.

    Attributes:
        name: Full name of the student
        email: Unique contact email, also used to sign in
        phone: Contact phone (may be empty)
        semester: Current semester (1-10)
        gpa: Grade point average
        max_credits: Credit cap for one semester
    """

    __tablename__ = "students"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    semester: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    gpa: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=9)

    def __repr__(self) -> str:
        return (
            f"Student(id={self.id!r}, name={self.name!r}, "
            f"semester={self.semester})"
        )
