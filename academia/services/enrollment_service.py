"""Enrollment service: saving a student's subject selection atomically.

The whole save runs in one transaction: the authoritative enrollment is
read, the target selection is re-checked against the enrollment rules with
fresh seat counts, and the enrollment edges are rewritten before a single
commit. Either every change lands or none does.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from sqlalchemy import delete, select

from academia.enrollment.rules import (
    DEFAULT_LIMITS,
    EnrollmentLimits,
    validate_selection,
)
from academia.exceptions import SelectionRejectedError
from academia.models.enrollment import Enrollment
from academia.models.student import Student
from academia.models.subject import Subject
from academia.services.base import BaseService
from academia.services.student_service import StudentService
from academia.services.subject_service import SubjectService

logger = logging.getLogger(__name__)


@dataclass
class SelectionOutcome:
    """Records touched by a saved selection.

    Attributes:
        student: Student row after the save.
        added: Subject ids that gained this student.
        removed: Subject ids that lost this student.
        subjects: Subject rows whose seat count changed.
    """

    student: Student
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    subjects: List[Subject] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class EnrollmentService(BaseService[Enrollment]):
    """Service for the student-to-subject enrollment edges.

    Usage:
        service = EnrollmentService(db_session, limits)
        outcome = await service.save_selection(student_id, ["s1", "s2"])
    """

    model = Enrollment

    def __init__(self, db, limits: EnrollmentLimits = DEFAULT_LIMITS) -> None:
        super().__init__(db)
        self.limits = limits

    async def subject_ids_for(self, student_id: str) -> List[str]:
        """Subjects the student currently holds a seat in."""
        async with self._db_errors("load enrollment", student_id=student_id):
            result = await self.db.execute(
                select(Enrollment.subject_id)
                .where(Enrollment.student_id == student_id)
                .order_by(Enrollment.created_at)
            )
            return list(result.scalars().all())

    async def save_selection(
        self, student_id: str, selection: Iterable[str]
    ) -> SelectionOutcome:
        """Replace the student's enrollment with ``selection``.

        Args:
            student_id: Student whose enrollment is saved.
            selection: Complete target set of subject ids.

        Returns:
            What changed. Saving an identical selection changes nothing and
            does not commit.

        Raises:
            RecordNotFoundError: If the student does not exist
            SelectionRejectedError: If the target breaks an enrollment rule
            DatabaseConnectionError: If database operation fails
        """
        students = StudentService(self.db)
        subjects = SubjectService(self.db)

        student = await students.get_by_id_or_fail(student_id)
        held = set(await self.subject_ids_for(student_id))
        target = set(selection)
        to_add = sorted(target - held)
        to_remove = sorted(held - target)

        if not to_add and not to_remove:
            return SelectionOutcome(student=student)

        async with self._db_errors("lock subjects", rollback=True, id=student_id):
            # Row locks keep two savers from taking the last seat (no-op on SQLite)
            result = await self.db.execute(
                select(Subject)
                .where(Subject.id.in_(sorted(target | held)))
                .order_by(Subject.id)
                .with_for_update()
            )
            rows = list(result.scalars().all())

        subject_documents = {
            document.id: document for document in await subjects.to_documents(rows)
        }
        student_document = await students.to_document(student)
        violations = validate_selection(
            student_document, target, subject_documents, self.limits, held=held
        )
        if violations:
            await self.db.rollback()
            logger.info(
                "Selection rejected",
                extra={
                    "student_id": student_id,
                    "reasons": [reason.value for reason, _ in violations],
                },
            )
            raise SelectionRejectedError(
                [(reason.value, message) for reason, message in violations]
            )

        changed_ids = set(to_add) | set(to_remove)
        async with self._db_errors("save selection", rollback=True, id=student_id):
            if to_remove:
                await self.db.execute(
                    delete(Enrollment).where(
                        Enrollment.student_id == student_id,
                        Enrollment.subject_id.in_(to_remove),
                    )
                )
            for subject_id in to_add:
                self.db.add(Enrollment(student_id=student_id, subject_id=subject_id))

            student.bump_version()
            changed = [row for row in rows if row.id in changed_ids]
            for row in changed:
                row.bump_version()

            await self.db.flush()
            await self.db.commit()

        logger.info(
            "Selection saved",
            extra={"student_id": student_id, "added": to_add, "removed": to_remove},
        )
        return SelectionOutcome(
            student=student, added=to_add, removed=to_remove, subjects=changed
        )

    async def enroll(self, student_id: str, subject_id: str) -> SelectionOutcome:
        """Add one subject to the saved enrollment."""
        held = await self.subject_ids_for(student_id)
        return await self.save_selection(student_id, [*held, subject_id])

    async def unenroll(self, student_id: str, subject_id: str) -> SelectionOutcome:
        """Drop one subject from the saved enrollment."""
        held = await self.subject_ids_for(student_id)
        return await self.save_selection(
            student_id, [held_id for held_id in held if held_id != subject_id]
        )

