"""Client-side entity store.

Holds the latest known copy of every student, subject and professor a
session has seen, keyed by id, plus the id of the signed-in student. Two
kinds of writes reach it: confirmed results of gateway calls and realtime
snapshots pushed by subscriptions. Both go through the same version guard:
an incoming copy older than the one held is discarded, so a late snapshot
can no longer overwrite a newer confirmed write.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel

from academia.schemas.student import StudentDocument

logger = logging.getLogger(__name__)


class EntityKind(str, enum.Enum):
    STUDENTS = "students"
    SUBJECTS = "subjects"
    PROFESSORS = "professors"


KindLike = Union[EntityKind, str]
ChangeListener = Callable[[EntityKind], None]


@dataclass
class CollectionState:
    """Documents of one kind plus its fetch flags.

    Attributes:
        items: Documents by id, in the order last delivered.
        is_loading: A fetch is running.
        error: Message of the last failed fetch.
        loaded: A full collection has been received at least once.
    """

    items: Dict[str, Any] = field(default_factory=dict)
    is_loading: bool = False
    error: Optional[str] = None
    loaded: bool = False


class EntityStore:
    """Normalized in-memory state for one client session.

    Usage:
        store = EntityStore()
        store.begin_load("subjects")
        store.finish_load("subjects", await gateway.subjects.get_all())
        store.sign_in(student_id)
        me = store.current_user
    """

    def __init__(self) -> None:
        self._collections: Dict[EntityKind, CollectionState] = {
            kind: CollectionState() for kind in EntityKind
        }
        self._listeners: List[ChangeListener] = []
        self.session_student_id: Optional[str] = None

    def state(self, kind: KindLike) -> CollectionState:
        return self._collections[EntityKind(kind)]

    def get(self, kind: KindLike, record_id: str) -> Optional[Any]:
        return self.state(kind).items.get(record_id)

    def all(self, kind: KindLike) -> List[Any]:
        return list(self.state(kind).items.values())

    def by_id(self, kind: KindLike) -> Dict[str, Any]:
        """Copy of the documents of ``kind`` keyed by id."""
        return dict(self.state(kind).items)

    # Session

    def sign_in(self, student_id: str) -> None:
        self.session_student_id = student_id
        self._emit(EntityKind.STUDENTS)

    def sign_out(self) -> None:
        self.session_student_id = None
        self._emit(EntityKind.STUDENTS)

    @property
    def current_user(self) -> Optional[StudentDocument]:
        """Signed-in student, resolved through the students collection."""
        if self.session_student_id is None:
            return None
        return self.get(EntityKind.STUDENTS, self.session_student_id)

    # Writes

    @staticmethod
    def _is_stale(held: Optional[BaseModel], incoming: BaseModel) -> bool:
        if held is None:
            return False
        return getattr(incoming, "version", 0) < getattr(held, "version", 0)

    def apply_confirmed(self, kind: KindLike, document: BaseModel) -> bool:
        """Store the result of a completed gateway call.

        Returns:
            False when the held copy is newer and the document was dropped.
        """
        kind = EntityKind(kind)
        items = self.state(kind).items
        if self._is_stale(items.get(document.id), document):
            logger.debug(
                "Discarded stale document",
                extra={"kind": kind.value, "id": document.id, "version": document.version},
            )
            return False
        items[document.id] = document
        self._emit(kind)
        return True

    def apply_removed(self, kind: KindLike, record_id: str) -> bool:
        kind = EntityKind(kind)
        removed = self.state(kind).items.pop(record_id, None)
        if removed is None:
            return False
        self._emit(kind)
        return True

    def replace_collection(self, kind: KindLike, documents: Iterable[BaseModel]) -> int:
        """Apply a realtime snapshot of a whole collection.

        Membership and order come from the snapshot. For each document the
        newer of the held and incoming copies is kept.

        Returns:
            Number of incoming documents discarded as stale.
        """
        kind = EntityKind(kind)
        state = self.state(kind)
        held = state.items
        fresh: Dict[str, Any] = {}
        stale = 0
        for document in documents:
            current = held.get(document.id)
            if self._is_stale(current, document):
                fresh[document.id] = current
                stale += 1
            else:
                fresh[document.id] = document
        state.items = fresh
        state.loaded = True
        state.error = None
        if stale:
            logger.debug(
                "Kept newer copies over snapshot",
                extra={"kind": kind.value, "stale": stale},
            )
        self._emit(kind)
        return stale

    def apply_snapshot_one(
        self, kind: KindLike, record_id: str, document: Optional[BaseModel]
    ) -> bool:
        """Apply a realtime snapshot of one document; ``None`` means deleted."""
        if document is None:
            return self.apply_removed(kind, record_id)
        return self.apply_confirmed(kind, document)

    # Fetch gating

    def is_populated(self, kind: KindLike) -> bool:
        state = self.state(kind)
        return state.loaded or state.is_loading

    def begin_load(self, kind: KindLike) -> None:
        state = self.state(kind)
        state.is_loading = True
        state.error = None
        self._emit(EntityKind(kind))

    def finish_load(self, kind: KindLike, documents: Iterable[BaseModel]) -> None:
        self.state(kind).is_loading = False
        self.replace_collection(kind, documents)

    def fail_load(self, kind: KindLike, message: str) -> None:
        state = self.state(kind)
        state.is_loading = False
        state.error = message
        self._emit(EntityKind(kind))

    # Change notification

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener(kind)`` after every write.

        Returns:
            Idempotent function removing the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self, kind: EntityKind) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind)
            except Exception:
                logger.exception("Store listener failed", extra={"kind": kind.value})
