"""Subject service providing business logic for Subject model operations.

The ``enrolled`` count of a subject is aggregated from the enrollment
table; creating or deleting a subject also bumps its professor, whose
derived subject list changed.
"""

import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import func, or_, select

from academia.exceptions import (
    RelatedRecordNotFoundError,
    TeachingLoadExceededError,
    ValidationError,
)
from academia.models.enrollment import Enrollment
from academia.models.professor import Professor
from academia.models.subject import Subject
from academia.schemas.subject import SubjectDocument
from academia.services.base import BaseService

logger = logging.getLogger(__name__)


class SubjectService(BaseService[Subject]):
    """Service for managing Subject entities.

    Provides CRUD operations through BaseService inheritance plus:
    - get_active(): Subjects open for enrollment
    - get_available(): Active subjects with a free seat
    - find_by_professor(professor_id): Subjects owned by a professor
    - search(term): Name/description search over active subjects

    Subjects are listed by name.
    """

    model = Subject
    document_schema = SubjectDocument

    def default_order(self):
        return (Subject.name.asc(), Subject.id)

    async def enrolled_counts(self, subject_ids: Sequence[str]) -> Dict[str, int]:
        """Number of enrollments per subject id."""
        if not subject_ids:
            return {}
        async with self._db_errors("count enrollments"):
            result = await self.db.execute(
                select(Enrollment.subject_id, func.count(Enrollment.id))
                .where(Enrollment.subject_id.in_(list(subject_ids)))
                .group_by(Enrollment.subject_id)
            )
            return {subject_id: count for subject_id, count in result.all()}

    async def to_documents(self, records: Sequence[Subject]) -> List[SubjectDocument]:
        counts = await self.enrolled_counts([subject.id for subject in records])
        documents = []
        for subject in records:
            document = SubjectDocument.model_validate(subject)
            document.enrolled = counts.get(subject.id, 0)
            documents.append(document)
        return documents

    async def _load_professor(self, professor_id: str) -> Professor:
        async with self._db_errors("load professor", professor_id=professor_id):
            professor = await self.db.get(Professor, professor_id)
        if professor is None:
            raise RelatedRecordNotFoundError("professor_id", professor_id)
        return professor

    async def create(self, **kwargs: Any) -> Subject:
        """Create a subject owned by an existing professor.

        Raises:
            RelatedRecordNotFoundError: If the professor does not exist
            TeachingLoadExceededError: If the professor is at ``max_subjects``
            DatabaseConnectionError: If database operation fails
        """
        professor = await self._load_professor(kwargs.get("professor_id", ""))
        load = await self.count(professor_id=professor.id)
        if load >= professor.max_subjects:
            raise TeachingLoadExceededError(professor.id, professor.max_subjects)

        # The professor's derived subject list changes with this write
        professor.bump_version()
        return await super().create(**kwargs)

    async def update(self, record_id: str, **kwargs: Any) -> Subject:
        """Update subject fields.

        Raises:
            RecordNotFoundError: If subject not found
            ValidationError: If ``capacity`` drops below the seats already taken
        """
        capacity = kwargs.get("capacity")
        if capacity is not None:
            enrolled = (await self.enrolled_counts([record_id])).get(record_id, 0)
            if capacity < enrolled:
                raise ValidationError(
                    f"Capacity {capacity} is below the {enrolled} students "
                    "already enrolled"
                )
        return await super().update(record_id, **kwargs)

    async def delete(self, record_id: str) -> None:
        """Delete a subject; its enrollments go with it."""
        subject = await self.get_by_id_or_fail(record_id)
        async with self._db_errors("delete enrollments", rollback=True, id=record_id):
            professor = await self.db.get(Professor, subject.professor_id)
            if professor is not None:
                professor.bump_version()
            enrollments = await self.db.execute(
                select(Enrollment).where(Enrollment.subject_id == record_id)
            )
            for enrollment in enrollments.scalars().all():
                await self.db.delete(enrollment)
            await self.db.flush()
        await super().delete(record_id)

    async def get_active(self) -> List[Subject]:
        return await self.find(is_active=True)

    async def get_available(self) -> List[SubjectDocument]:
        """Active subjects that still have a free seat, as documents."""
        documents = await self.to_documents(await self.get_active())
        return [document for document in documents if document.has_free_seats]

    async def find_by_professor(
        self, professor_id: str, active_only: bool = True
    ) -> List[Subject]:
        filters: Dict[str, Any] = {"professor_id": professor_id}
        if active_only:
            filters["is_active"] = True
        return await self.find(**filters)

    async def search(self, search: str = "", limit: int = 50) -> List[Subject]:
        """Search active subjects by name or description (case-insensitive)."""
        async with self._db_errors("search", search=search):
            stmt = (
                select(Subject)
                .where(Subject.is_active.is_(True))
                .order_by(*self.default_order())
                .limit(limit)
            )
            if search:
                pattern = f"%{search}%"
                stmt = stmt.where(
                    or_(Subject.name.ilike(pattern), Subject.description.ilike(pattern))
                )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
