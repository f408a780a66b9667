"""Selection screen controller.

Bridges a student's toggles to the enrollment rules and their save to the
gateway. Toggles are decided locally and never reach the gateway; a save
runs once at a time through a single-flight action. Every accepted,
rejected or failed action produces one ``Notification``.

Screen states::

    IDLE -> LOADING -> READY | ERROR
    READY -> SAVING -> READY | ERROR
    READY | ERROR -> LOADING (refresh)
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    List,
    Optional,
    Set,
    TypeVar,
)

from academia.enrollment import rules
from academia.enrollment.rules import DEFAULT_LIMITS, Decision, EnrollmentLimits, Reason
from academia.exceptions import (
    AppError,
    RecordNotFoundError,
    RuleViolationError,
    SelectionRejectedError,
    ValidationError,
)
from academia.gateway import RemoteGateway, SelectionResult, Unsubscribe
from academia.schemas.student import StudentDocument
from academia.schemas.subject import SubjectDocument
from academia.store.entity_store import EntityKind, EntityStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScreenState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    ERROR = "error"


SCREEN_TRANSITIONS: Dict[ScreenState, Set[ScreenState]] = {
    ScreenState.IDLE: {ScreenState.LOADING},
    ScreenState.LOADING: {ScreenState.READY, ScreenState.ERROR},
    ScreenState.READY: {ScreenState.SAVING, ScreenState.LOADING},
    ScreenState.SAVING: {ScreenState.READY, ScreenState.ERROR},
    ScreenState.ERROR: {ScreenState.READY, ScreenState.LOADING, ScreenState.SAVING},
}


class ActionState(str, enum.Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Notification:
    """User-facing message about one action.

    Attributes:
        level: "success", "info", "warning" or "error".
        title: Short heading.
        message: Sentence naming the rule or error.
    """

    level: str
    title: str
    message: str


class SingleFlightAction(Generic[T]):
    """Runs at most one instance of an async operation at a time.

    A call made while the operation is in flight joins it and receives the
    same result or exception instead of starting a second one.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = ActionState.IDLE
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self.state is ActionState.IN_FLIGHT

    async def _execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await operation()
        except BaseException as e:
            self.state = ActionState.FAILED
            self.error = e
            raise
        self.state = ActionState.DONE
        self.result = result
        return result

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if not self.in_flight:
            self.state = ActionState.IN_FLIGHT
            self.result = None
            self.error = None
            self._task = asyncio.ensure_future(self._execute(operation))
            logger.debug("Action started", extra={"action": self.name})
        # Cancelling one caller must not cancel the shared operation
        return await asyncio.shield(self._task)


class SelectionController:
    """Selection screen for one signed-in student.

    Usage:
        controller = SelectionController(gateway, store)
        await controller.open(student_id)
        controller.toggle(subject_id)
        await controller.save()
        controller.close()
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        store: EntityStore,
        limits: EnrollmentLimits = DEFAULT_LIMITS,
        notify: Optional[Callable[[Notification], Any]] = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.limits = limits
        self.state = ScreenState.IDLE
        self.student_id: Optional[str] = None
        self.saved: FrozenSet[str] = frozenset()
        self.selection: FrozenSet[str] = frozenset()
        self.notifications: List[Notification] = []
        self.save_action: SingleFlightAction[SelectionResult] = SingleFlightAction("save")
        self._notify = notify
        self._unsubscribers: List[Unsubscribe] = []

    # Derived values

    @property
    def student(self) -> Optional[StudentDocument]:
        if self.student_id is None:
            return None
        return self.store.get(EntityKind.STUDENTS, self.student_id)

    @property
    def subjects(self) -> Dict[str, SubjectDocument]:
        return self.store.by_id(EntityKind.SUBJECTS)

    @property
    def total_credits(self) -> int:
        return rules.total_credits(self.selection, self.subjects, self.limits)

    @property
    def remaining_credits(self) -> int:
        return rules.remaining_credits(
            self.student, self.selection, self.subjects, self.limits
        )

    @property
    def has_unsaved_changes(self) -> bool:
        return rules.has_unsaved_changes(self.saved, self.selection)

    # Internals

    def _move(self, target: ScreenState) -> None:
        if target not in SCREEN_TRANSITIONS[self.state]:
            raise ValidationError(
                f"Selection screen cannot go from {self.state.value} to {target.value}"
            )
        logger.debug(
            "Selection screen transition",
            extra={"from": self.state.value, "to": target.value, "student_id": self.student_id},
        )
        self.state = target

    def _emit(self, level: str, title: str, message: str) -> Notification:
        notification = Notification(level, title, message)
        self.notifications.append(notification)
        if self._notify is not None:
            self._notify(notification)
        return notification

    def _adopt(self, student: StudentDocument, force: bool = False) -> None:
        """Take ``student``'s enrollment as saved; keep local edits unless forced."""
        keep_edits = self.has_unsaved_changes and not force
        self.saved = frozenset(student.subjects)
        if not keep_edits:
            self.selection = self.saved

    async def _load(self, force: bool) -> None:
        collections = (
            (EntityKind.STUDENTS, self.gateway.students),
            (EntityKind.SUBJECTS, self.gateway.subjects),
            (EntityKind.PROFESSORS, self.gateway.professors),
        )
        for kind, collection in collections:
            if self.store.is_populated(kind) and not force:
                continue
            self.store.begin_load(kind)
            try:
                documents = await collection.get_all()
            except AppError as e:
                self.store.fail_load(kind, str(e))
                raise
            self.store.finish_load(kind, documents)

        # The authoritative record, never the cached copy
        student = await self.gateway.students.get_by_id(self.student_id)
        if student is None:
            raise RecordNotFoundError("Student", self.student_id)
        self.store.apply_confirmed(EntityKind.STUDENTS, student)

    # Realtime

    def _on_student(self, document: Optional[StudentDocument]) -> None:
        self.store.apply_snapshot_one(EntityKind.STUDENTS, self.student_id, document)
        if document is None:
            self._emit("warning", "Account removed", "Your student record was deleted.")
            return
        held = self.student
        if held is not None:
            self._adopt(held)

    def _on_subjects(self, documents: List[SubjectDocument]) -> None:
        self.store.replace_collection(EntityKind.SUBJECTS, documents)

    def _on_professors(self, documents: List[Any]) -> None:
        self.store.replace_collection(EntityKind.PROFESSORS, documents)

    async def _subscribe(self) -> None:
        self._unsubscribers.append(
            await self.gateway.students.subscribe_one(self.student_id, self._on_student)
        )
        self._unsubscribers.append(await self.gateway.subjects.subscribe(self._on_subjects))
        self._unsubscribers.append(
            await self.gateway.professors.subscribe(self._on_professors)
        )

    # Actions

    async def open(self, student_id: str) -> bool:
        """Load everything the screen needs and start listening for changes.

        Returns:
            Whether the screen reached READY.
        """
        self._move(ScreenState.LOADING)
        self.student_id = student_id
        self.store.sign_in(student_id)
        try:
            await self._load(force=False)
            self._adopt(self.student, force=True)
            await self._subscribe()
        except AppError as e:
            self.close_feeds()
            self.state = ScreenState.ERROR
            logger.warning(
                "Selection screen failed to load",
                extra={"student_id": student_id, "error": str(e)},
            )
            self._emit("error", "Could not load your subjects", str(e))
            return False
        self._move(ScreenState.READY)
        return True

    def toggle(self, subject_id: str) -> Decision:
        """Add or remove ``subject_id`` in the working selection.

        Raises:
            ValidationError: If the screen is not ready for edits
        """
        if self.state is ScreenState.ERROR:
            self._move(ScreenState.READY)
        elif self.state is not ScreenState.READY:
            raise ValidationError(
                f"Selection cannot change while {self.state.value}"
            )

        professors = self.store.by_id(EntityKind.PROFESSORS)
        decision = rules.toggle(
            self.student, subject_id, self.selection, self.subjects, self.limits, professors
        )
        if not decision.accepted:
            self._emit("warning", "Subject not added", decision.message)
            return decision

        self.selection = decision.selection
        if decision.changed:
            self._emit("success", "Selection updated", decision.message)
        else:
            self._emit("info", "No change", decision.message)
        return decision

    async def save(self) -> Optional[SelectionResult]:
        """Persist the working selection.

        Returns:
            The saved result, or ``None`` when nothing was saved.
        """
        if self.save_action.in_flight:
            try:
                return await self.save_action.run(self._persist)
            except AppError:
                # The caller that started the save reports the failure
                return None

        if not self.selection:
            self._emit(
                "warning",
                "Nothing selected",
                "Select at least one subject before saving.",
            )
            logger.info(
                "Empty selection not saved",
                extra={"student_id": self.student_id, "reason": Reason.EMPTY_SELECTION.value},
            )
            return None

        self._move(ScreenState.SAVING)
        try:
            result = await self.save_action.run(self._persist)
        except RuleViolationError as e:
            self.state = ScreenState.READY
            message = str(e)
            if isinstance(e, SelectionRejectedError) and len(e.violations) > 1:
                message = " ".join(text for _, text in e.violations)
            self._emit("warning", "Selection rejected", message)
            return None
        except AppError as e:
            self._move(ScreenState.ERROR)
            logger.error(
                "Failed to save selection",
                extra={"student_id": self.student_id, "error": str(e)},
            )
            self._emit("error", "Could not save your selection", str(e))
            return None

        self.store.apply_confirmed(EntityKind.STUDENTS, result.student)
        for subject in result.subjects:
            self.store.apply_confirmed(EntityKind.SUBJECTS, subject)
        self._adopt(self.student or result.student, force=True)
        self._move(ScreenState.READY)
        self._emit(
            "success",
            "Selection saved",
            f"You are enrolled in {len(self.saved)} subject(s).",
        )
        return result

    async def _persist(self) -> SelectionResult:
        return await self.gateway.save_selection(self.student_id, sorted(self.selection))

    async def refresh(self) -> bool:
        """Re-fetch students, subjects and the authoritative student."""
        self._move(ScreenState.LOADING)
        try:
            await self._load(force=True)
        except AppError as e:
            self.state = ScreenState.ERROR
            self._emit("error", "Could not refresh", str(e))
            return False
        self._adopt(self.student)
        self._move(ScreenState.READY)
        return True

    def close_feeds(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def close(self) -> None:
        """Tear the screen down; no callback fires afterwards."""
        self.close_feeds()
        self.state = ScreenState.IDLE
