"""Professor service providing business logic for Professor model operations.

A professor's subject list is the set of subjects pointing at them; it is
never stored on the professor row.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select

from academia.exceptions import (
    RecordNotFoundError,
    TeachingLoadExceededError,
    ValidationError,
)
from academia.models.professor import Professor
from academia.models.subject import Subject
from academia.schemas.professor import DistributionReport, ProfessorDocument
from academia.services.base import BaseService

logger = logging.getLogger(__name__)


class ProfessorService(BaseService[Professor]):
    """Service for managing Professor entities.

    Provides CRUD operations through BaseService inheritance plus:
    - get_active(): Active professors
    - find_by_subject(subject_id): Owner of a subject
    - search(term): Name/email search over active professors
    - assign_subject(professor_id, subject_id): Move subject ownership
    - validate_distribution(): Teaching-load report

    Professors are listed by name.
    """

    model = Professor
    document_schema = ProfessorDocument

    def default_order(self):
        return (Professor.name.asc(), Professor.id)

    async def subjects_by_professor(
        self, professor_ids: Sequence[str]
    ) -> Dict[str, List[str]]:
        """Owned subject ids per professor id, in subject name order."""
        if not professor_ids:
            return {}
        async with self._db_errors("load teaching load"):
            result = await self.db.execute(
                select(Subject.professor_id, Subject.id)
                .where(Subject.professor_id.in_(list(professor_ids)))
                .order_by(Subject.name, Subject.id)
            )
            owned: Dict[str, List[str]] = defaultdict(list)
            for professor_id, subject_id in result.all():
                owned[professor_id].append(subject_id)
            return owned

    async def to_documents(
        self, records: Sequence[Professor]
    ) -> List[ProfessorDocument]:
        owned = await self.subjects_by_professor([professor.id for professor in records])
        documents = []
        for professor in records:
            document = ProfessorDocument.model_validate(professor)
            document.subjects = owned.get(professor.id, [])
            documents.append(document)
        return documents

    async def create(self, **kwargs) -> Professor:
        if "email" in kwargs:
            kwargs["email"] = kwargs["email"].strip().lower()
        return await super().create(**kwargs)

    async def update(self, record_id: str, **kwargs) -> Professor:
        if kwargs.get("email"):
            kwargs["email"] = kwargs["email"].strip().lower()
        return await super().update(record_id, **kwargs)

    async def delete(self, record_id: str) -> None:
        """Delete a professor who no longer owns any subject.

        Raises:
            RecordNotFoundError: If professor not found
            ValidationError: If the professor still owns subjects
        """
        await self.get_by_id_or_fail(record_id)
        owned = await self.subjects_by_professor([record_id])
        if owned.get(record_id):
            raise ValidationError(
                f"Professor {record_id} still owns {len(owned[record_id])} "
                "subject(s); reassign or delete them first"
            )
        await super().delete(record_id)

    async def get_active(self) -> List[Professor]:
        return await self.find(is_active=True)

    async def find_by_subject(self, subject_id: str) -> List[Professor]:
        """Active professors teaching ``subject_id`` (at most one)."""
        async with self._db_errors("find_by_subject", subject_id=subject_id):
            result = await self.db.execute(
                select(Professor)
                .join(Subject, Subject.professor_id == Professor.id)
                .where(Subject.id == subject_id, Professor.is_active.is_(True))
            )
            return list(result.scalars().all())

    async def search(self, search: str = "", limit: int = 50) -> List[Professor]:
        """Search active professors by name or email (case-insensitive)."""
        async with self._db_errors("search", search=search):
            stmt = (
                select(Professor)
                .where(Professor.is_active.is_(True))
                .order_by(*self.default_order())
                .limit(limit)
            )
            if search:
                pattern = f"%{search}%"
                stmt = stmt.where(
                    or_(Professor.name.ilike(pattern), Professor.email.ilike(pattern))
                )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def assign_subject(
        self, professor_id: str, subject_id: str
    ) -> Tuple[Professor, Subject, Optional[str]]:
        """Make ``professor_id`` the owner of ``subject_id``.

        Returns:
            The professor, the subject and the id of the previous owner.

        Raises:
            RecordNotFoundError: If professor or subject not found
            ValidationError: If the professor already owns the subject
            TeachingLoadExceededError: If the professor is at ``max_subjects``
        """
        professor = await self.get_by_id_or_fail(professor_id)
        async with self._db_errors("load subject", subject_id=subject_id):
            subject = await self.db.get(Subject, subject_id)
        if subject is None:
            raise RecordNotFoundError("Subject", subject_id)
        if subject.professor_id == professor_id:
            raise ValidationError(
                f"Professor {professor_id} is already assigned to {subject.name}"
            )

        owned = await self.subjects_by_professor([professor_id])
        if len(owned.get(professor_id, [])) >= professor.max_subjects:
            raise TeachingLoadExceededError(professor_id, professor.max_subjects)

        previous_id = subject.professor_id
        async with self._db_errors("assign subject", rollback=True, id=professor_id):
            previous = await self.db.get(Professor, previous_id)
            if previous is not None:
                previous.bump_version()
            subject.professor_id = professor_id
            subject.bump_version()
            professor.bump_version()
            await self.db.flush()
            await self.db.commit()

        logger.info(
            "Subject reassigned",
            extra={
                "subject_id": subject_id,
                "professor_id": professor_id,
                "previous_professor_id": previous_id,
            },
        )
        return professor, subject, previous_id

    async def validate_distribution(self) -> DistributionReport:
        """Check every professor's load and every subject's owner."""
        professors = await self.get_all()
        by_id = {professor.id: professor for professor in professors}
        owned = await self.subjects_by_professor(list(by_id))

        errors: List[str] = []
        for professor in professors:
            load = len(owned.get(professor.id, []))
            if load > professor.max_subjects:
                errors.append(
                    f"{professor.name} teaches {load} subjects "
                    f"(maximum {professor.max_subjects})"
                )

        async with self._db_errors("load subjects"):
            result = await self.db.execute(
                select(Subject).order_by(Subject.name, Subject.id)
            )
            subjects = list(result.scalars().all())
        for subject in subjects:
            owner = by_id.get(subject.professor_id)
            if owner is None:
                errors.append(f"{subject.name} has no professor")
            elif subject.is_active and not owner.is_active:
                errors.append(f"{subject.name} is taught by inactive {owner.name}")

        return DistributionReport(is_valid=not errors, errors=errors)
