"""Professor model representing subject owners."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academia.models.base import BaseModel


class Professor(BaseModel):
    """Professor who owns (teaches) subjects.

    The teaching load is the number of subjects pointing at the professor;
    it is bounded by ``max_subjects``.

    Attributes:
        name: Full name (e.g., "Dr. Ana Martinez")
        email: Unique contact email
        max_subjects: Maximum number of subjects the professor may teach
        is_active: Inactive professors stay referenced but get no new subjects
    """

    __tablename__ = "professors"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    max_subjects: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"Professor(id={self.id!r}, name={self.name!r})"
