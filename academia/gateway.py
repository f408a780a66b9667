"""Remote data gateway.

One ``CollectionGateway`` per collection turns CRUD and subscription
requests into service calls, each on its own database session, and
returns detached pydantic documents. Every committed write is announced on
the change feed so that subscribers receive fresh snapshots.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    List,
    Optional,
    TypeVar,
    Union,
)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academia.enrollment.rules import DEFAULT_LIMITS, EnrollmentLimits
from academia.realtime.feed import ChangeEvent, ChangeFeed
from academia.schemas.professor import DistributionReport, ProfessorDocument
from academia.schemas.student import StudentDocument
from academia.schemas.subject import SubjectDocument
from academia.services.base import BaseService
from academia.services.enrollment_service import EnrollmentService, SelectionOutcome
from academia.services.professor_service import ProfessorService
from academia.services.student_service import StudentService
from academia.services.subject_service import SubjectService

logger = logging.getLogger(__name__)

D = TypeVar("D")
S = TypeVar("S", bound=BaseService)

Callback = Callable[[Any], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


async def _deliver(callback: Callback, value: Any) -> None:
    result = callback(value)
    if inspect.isawaitable(result):
        await result


@dataclass
class SelectionResult:
    """Documents touched by a saved selection."""

    student: StudentDocument
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    subjects: List[SubjectDocument] = field(default_factory=list)


class CollectionGateway(Generic[S, D]):
    """CRUD and realtime access to one collection.

    Attributes:
        name: Collection name, also the change feed key.
    """

    name: str
    service_class: type

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed

    @asynccontextmanager
    async def _service(self) -> AsyncIterator[S]:
        async with self._session_factory() as session:
            yield self.service_class(session)

    async def _documents(
        self, load: Callable[[S], Awaitable[List[Any]]]
    ) -> List[D]:
        async with self._service() as service:
            records = await load(service)
            return await service.to_documents(records)

    async def notify(self, record_id: str, version: int = 0, deleted: bool = False) -> None:
        await self._feed.publish(ChangeEvent(self.name, record_id, version, deleted))

    async def get_all(self) -> List[D]:
        """Whole collection in its stable order."""
        return await self._documents(lambda service: service.get_all())

    async def get_by_id(self, record_id: str) -> Optional[D]:
        """Document by id, ``None`` when absent."""
        async with self._service() as service:
            record = await service.get_by_id(record_id)
            if record is None:
                return None
            return await service.to_document(record)

    async def get_many(self, record_ids: Iterable[str]) -> List[D]:
        ids = list(record_ids)
        return await self._documents(lambda service: service.get_many(ids))

    async def create(self, **fields: Any) -> D:
        """Create a document; the server assigns id, timestamps and version."""
        async with self._service() as service:
            record = await service.create(**fields)
            document = await service.to_document(record)
        await self.notify(document.id, document.version)
        return document

    async def update(self, record_id: str, **fields: Any) -> D:
        """Merge ``fields`` into a document.

        Raises:
            RecordNotFoundError: If the id is absent
        """
        async with self._service() as service:
            record = await service.update(record_id, **fields)
            document = await service.to_document(record)
        await self.notify(document.id, document.version)
        return document

    async def delete(self, record_id: str) -> None:
        """Delete a document.

        Raises:
            RecordNotFoundError: If the id is absent
        """
        async with self._service() as service:
            await service.delete(record_id)
        await self.notify(record_id, deleted=True)

    async def subscribe(self, callback: Callback) -> Unsubscribe:
        """Deliver the full collection now and after every change to it.

        Args:
            callback: Called (or awaited) with the ordered list of documents.

        Returns:
            Function stopping further deliveries.
        """
        active = True

        async def on_change(event: ChangeEvent) -> None:
            if not active:
                return
            snapshot = await self.get_all()
            if active:
                await _deliver(callback, snapshot)

        stop_listening = self._feed.listen(self.name, on_change)

        def unsubscribe() -> None:
            nonlocal active
            active = False
            stop_listening()

        try:
            await _deliver(callback, await self.get_all())
        except BaseException:
            unsubscribe()
            raise
        logger.debug("Collection subscription opened", extra={"collection": self.name})
        return unsubscribe

    async def subscribe_one(self, record_id: str, callback: Callback) -> Unsubscribe:
        """Deliver one document now and after each change; ``None`` once deleted."""
        active = True

        async def on_change(event: ChangeEvent) -> None:
            if not active or event.record_id != record_id:
                return
            document = None if event.deleted else await self.get_by_id(record_id)
            if active:
                await _deliver(callback, document)

        stop_listening = self._feed.listen(self.name, on_change)

        def unsubscribe() -> None:
            nonlocal active
            active = False
            stop_listening()

        try:
            await _deliver(callback, await self.get_by_id(record_id))
        except BaseException:
            unsubscribe()
            raise
        return unsubscribe


class StudentsGateway(CollectionGateway[StudentService, StudentDocument]):
    name = "students"
    service_class = StudentService

    def __init__(self, session_factory, feed, limits: EnrollmentLimits = DEFAULT_LIMITS):
        super().__init__(session_factory, feed)
        self._limits = limits

    async def create(self, **fields: Any) -> StudentDocument:
        """Register a student; the semester credit cap defaults to the limits."""
        if fields.get("max_credits") is None:
            fields["max_credits"] = self._limits.max_credits
        return await super().create(**fields)

    async def delete(self, record_id: str) -> None:
        existing = await self.get_by_id(record_id)
        await super().delete(record_id)
        if existing is not None:
            # Their seats were freed
            for subject_id in existing.subjects:
                await self._feed.publish(ChangeEvent("subjects", subject_id))

    async def get_by_email(self, email: str) -> Optional[StudentDocument]:
        async with self._service() as service:
            record = await service.get_by_email(email)
            return await service.to_document(record) if record else None

    async def find_by_subject(self, subject_id: str) -> List[StudentDocument]:
        return await self._documents(lambda service: service.find_by_subject(subject_id))

    async def find_by_professor(self, professor_id: str) -> List[StudentDocument]:
        return await self._documents(
            lambda service: service.find_by_professor(professor_id)
        )

    async def search(self, term: str = "", limit: int = 50) -> List[StudentDocument]:
        return await self._documents(lambda service: service.search(term, limit))


class SubjectsGateway(CollectionGateway[SubjectService, SubjectDocument]):
    name = "subjects"
    service_class = SubjectService

    def __init__(self, session_factory, feed, students: StudentsGateway, professors):
        super().__init__(session_factory, feed)
        self._students = students
        self._professors = professors

    async def create(self, **fields: Any) -> SubjectDocument:
        document = await super().create(**fields)
        await self._professors.notify(document.professor_id)
        return document

    async def update(self, record_id: str, **fields: Any) -> SubjectDocument:
        document = await super().update(record_id, **fields)
        # Credits feed into the enrolled students' derived totals
        for student in await self._students.find_by_subject(record_id):
            await self._students.notify(student.id, student.version)
        return document

    async def delete(self, record_id: str) -> None:
        existing = await self.get_by_id(record_id)
        enrolled = await self._students.find_by_subject(record_id)
        await super().delete(record_id)
        if existing is not None:
            await self._professors.notify(existing.professor_id)
        for student in enrolled:
            await self._students.notify(student.id)

    async def get_active(self) -> List[SubjectDocument]:
        return await self._documents(lambda service: service.get_active())

    async def get_available(self) -> List[SubjectDocument]:
        async with self._service() as service:
            return await service.get_available()

    async def find_by_professor(
        self, professor_id: str, active_only: bool = True
    ) -> List[SubjectDocument]:
        return await self._documents(
            lambda service: service.find_by_professor(professor_id, active_only)
        )

    async def search(self, term: str = "", limit: int = 50) -> List[SubjectDocument]:
        return await self._documents(lambda service: service.search(term, limit))


class ProfessorsGateway(CollectionGateway[ProfessorService, ProfessorDocument]):
    name = "professors"
    service_class = ProfessorService

    async def get_active(self) -> List[ProfessorDocument]:
        return await self._documents(lambda service: service.get_active())

    async def find_by_subject(self, subject_id: str) -> List[ProfessorDocument]:
        return await self._documents(lambda service: service.find_by_subject(subject_id))

    async def search(self, term: str = "", limit: int = 50) -> List[ProfessorDocument]:
        return await self._documents(lambda service: service.search(term, limit))

    async def assign_subject(self, professor_id: str, subject_id: str) -> ProfessorDocument:
        """Move ``subject_id`` to ``professor_id``.

        Raises:
            RecordNotFoundError: If professor or subject not found
            ValidationError: If already assigned
            TeachingLoadExceededError: If the professor's load is full
        """
        async with self._service() as service:
            professor, subject, previous_id = await service.assign_subject(
                professor_id, subject_id
            )
            document = await service.to_document(professor)
            subject_version = subject.version
        await self.notify(professor_id, document.version)
        if previous_id:
            await self.notify(previous_id)
        await self._feed.publish(ChangeEvent("subjects", subject_id, subject_version))
        return document

    async def validate_distribution(self) -> DistributionReport:
        async with self._service() as service:
            return await service.validate_distribution()


class RemoteGateway:
    """Entry point bundling the three collections and the selection save.

    Usage:
        gateway = RemoteGateway(db_manager.session_factory, ChangeFeed())
        subjects = await gateway.subjects.get_all()
        stop = await gateway.subjects.subscribe(print)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: Optional[ChangeFeed] = None,
        limits: EnrollmentLimits = DEFAULT_LIMITS,
    ) -> None:
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()
        self.limits = limits
        self.students = StudentsGateway(session_factory, self.feed, limits)
        self.professors = ProfessorsGateway(session_factory, self.feed)
        self.subjects = SubjectsGateway(
            session_factory, self.feed, self.students, self.professors
        )

    async def save_selection(
        self, student_id: str, selection: Iterable[str]
    ) -> SelectionResult:
        """Persist a student's selection in one transaction.

        Raises:
            RecordNotFoundError: If the student does not exist
            SelectionRejectedError: If the selection breaks a rule
            DatabaseConnectionError: If database operation fails
        """
        return await self._commit_enrollment(
            lambda service: service.save_selection(student_id, selection)
        )

    async def enroll(self, student_id: str, subject_id: str) -> SelectionResult:
        """Add one subject to the saved enrollment, checked like a full save.

        Raises:
            RecordNotFoundError: If the student does not exist
            SelectionRejectedError: If the result breaks a rule
        """
        return await self._commit_enrollment(
            lambda service: service.enroll(student_id, subject_id)
        )

    async def unenroll(self, student_id: str, subject_id: str) -> SelectionResult:
        """Drop one subject from the saved enrollment.

        Raises:
            RecordNotFoundError: If the student does not exist
        """
        return await self._commit_enrollment(
            lambda service: service.unenroll(student_id, subject_id)
        )

    async def _commit_enrollment(
        self, write: Callable[[EnrollmentService], Awaitable[SelectionOutcome]]
    ) -> SelectionResult:
        async with self._session_factory() as session:
            outcome = await write(EnrollmentService(session, self.limits))
            student = await StudentService(session).to_document(outcome.student)
            subjects = await SubjectService(session).to_documents(outcome.subjects)

        if outcome.changed:
            await self.students.notify(student.id, student.version)
            for subject in subjects:
                await self.subjects.notify(subject.id, subject.version)

        return SelectionResult(
            student=student,
            added=outcome.added,
            removed=outcome.removed,
            subjects=subjects,
        )
