"""Student service providing business logic for Student model operations.

Enrollment fields of a student (subjects, professors, credits) are derived
from the ``enrollments`` table each time students are turned into documents.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from sqlalchemy import or_, select

from academia.models.enrollment import Enrollment
from academia.models.student import Student
from academia.models.subject import Subject
from academia.schemas.student import StudentDocument
from academia.services.base import BaseService

logger = logging.getLogger(__name__)


class StudentService(BaseService[Student]):
    """Service for managing Student entities.

    Provides CRUD operations through BaseService inheritance plus:
    - get_by_email(email): Sign-in lookup
    - find_by_subject(subject_id): Students enrolled in a subject
    - find_by_professor(professor_id): Students taught by a professor
    - search(term): Name/email search

    Students are listed newest first.
    """

    model = Student
    document_schema = StudentDocument

    def default_order(self):
        return (Student.created_at.desc(), Student.id)

    async def to_documents(self, records: Sequence[Student]) -> List[StudentDocument]:
        """Build documents with subjects, professors and credits filled in."""
        if not records:
            return []
        student_ids = [student.id for student in records]
        async with self._db_errors("derive enrollment"):
            result = await self.db.execute(
                select(
                    Enrollment.student_id,
                    Subject.id,
                    Subject.professor_id,
                    Subject.credits,
                )
                .join(Subject, Subject.id == Enrollment.subject_id)
                .where(Enrollment.student_id.in_(student_ids))
                .order_by(Enrollment.created_at, Subject.name)
            )
            rows = result.all()

        subjects: Dict[str, List[str]] = defaultdict(list)
        professors: Dict[str, List[str]] = defaultdict(list)
        credits: Dict[str, int] = defaultdict(int)
        for student_id, subject_id, professor_id, subject_credits in rows:
            subjects[student_id].append(subject_id)
            if professor_id not in professors[student_id]:
                professors[student_id].append(professor_id)
            credits[student_id] += subject_credits

        documents = []
        for student in records:
            document = StudentDocument.model_validate(student)
            document.subjects = subjects[student.id]
            document.professors = professors[student.id]
            document.credits = credits[student.id]
            documents.append(document)
        return documents

    async def get_by_email(self, email: str) -> Optional[Student]:
        """Return the student registered with ``email`` (case-insensitive)."""
        async with self._db_errors("get_by_email"):
            result = await self.db.execute(
                select(Student).where(Student.email == email.strip().lower())
            )
            return result.scalar_one_or_none()

    async def create(self, **kwargs) -> Student:
        if "email" in kwargs:
            kwargs["email"] = kwargs["email"].strip().lower()
        return await super().create(**kwargs)

    async def update(self, record_id: str, **kwargs) -> Student:
        if kwargs.get("email"):
            kwargs["email"] = kwargs["email"].strip().lower()
        return await super().update(record_id, **kwargs)

    async def delete(self, record_id: str) -> None:
        """Delete a student together with their enrollments.

        Subjects the student held a seat in get a new version, since their
        ``enrolled`` count drops.

        Raises:
            RecordNotFoundError: If student not found
        """
        await self.get_by_id_or_fail(record_id)
        async with self._db_errors("delete enrollments", rollback=True, id=record_id):
            result = await self.db.execute(
                select(Enrollment).where(Enrollment.student_id == record_id)
            )
            enrollments = list(result.scalars().all())
            held = [enrollment.subject_id for enrollment in enrollments]
            if held:
                subjects = await self.db.execute(
                    select(Subject).where(Subject.id.in_(held))
                )
                for subject in subjects.scalars().all():
                    subject.bump_version()
            for enrollment in enrollments:
                await self.db.delete(enrollment)
            await self.db.flush()
        await super().delete(record_id)

    async def find_by_subject(self, subject_id: str) -> List[Student]:
        """Students holding a seat in ``subject_id``."""
        async with self._db_errors("find_by_subject", subject_id=subject_id):
            result = await self.db.execute(
                select(Student)
                .join(Enrollment, Enrollment.student_id == Student.id)
                .where(Enrollment.subject_id == subject_id)
                .order_by(*self.default_order())
            )
            return list(result.scalars().all())

    async def find_by_professor(self, professor_id: str) -> List[Student]:
        """Students enrolled in any subject owned by ``professor_id``."""
        async with self._db_errors("find_by_professor", professor_id=professor_id):
            result = await self.db.execute(
                select(Student)
                .join(Enrollment, Enrollment.student_id == Student.id)
                .join(Subject, Subject.id == Enrollment.subject_id)
                .where(Subject.professor_id == professor_id)
                .distinct()
                .order_by(*self.default_order())
            )
            return list(result.scalars().all())

    async def search(self, search: str = "", limit: int = 50) -> List[Student]:
        """Search students by name or email (case-insensitive)."""
        async with self._db_errors("search", search=search):
            stmt = select(Student).order_by(*self.default_order()).limit(limit)
            if search:
                pattern = f"%{search}%"
                stmt = stmt.where(
                    or_(Student.name.ilike(pattern), Student.email.ilike(pattern))
                )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
