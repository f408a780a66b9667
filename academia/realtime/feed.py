"""Change feed delivering write notifications to realtime subscribers.

Every committed write publishes a ``ChangeEvent``. Listeners register per
collection and are called once per event. Without Redis the events fan out
inside the process; with a ``PubSubService`` they travel through one Redis
channel and a relay task fans out whatever arrives, including events from
other processes. Delivery is at-least-once and unordered across
collections.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from redis.exceptions import RedisError

from academia.utils.pubsub import PubSubService

logger = logging.getLogger(__name__)

COLLECTIONS = ("students", "subjects", "professors")


@dataclass(frozen=True)
class ChangeEvent:
    """One committed change to a document.

    Attributes:
        collection: Collection name ("students", "subjects", "professors").
        record_id: Id of the changed document.
        version: Version after the change (0 when unknown).
        deleted: Whether the document was removed.
    """

    collection: str
    record_id: str
    version: int = 0
    deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeEvent":
        return cls(
            collection=data["collection"],
            record_id=data["record_id"],
            version=int(data.get("version", 0)),
            deleted=bool(data.get("deleted", False)),
        )


Listener = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ChangeFeed:
    """Fan-out of change events to per-collection listeners.

    Usage:
        feed = ChangeFeed()
        stop = feed.listen("subjects", on_subject_change)
        await feed.publish(ChangeEvent("subjects", "abc", version=2))
        stop()
    """

    CHANNEL = "academia:changes"
    SUBSCRIBE_TIMEOUT = 5.0

    def __init__(self, pubsub: Optional[PubSubService] = None) -> None:
        self._pubsub = pubsub
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._relay_task: Optional[asyncio.Task] = None
        self._subscribed: Optional[asyncio.Event] = None

    @property
    def relaying(self) -> bool:
        """Whether events currently travel through Redis."""
        return (
            self._relay_task is not None
            and not self._relay_task.done()
            and self._subscribed is not None
            and self._subscribed.is_set()
        )

    def listen(self, collection: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``collection``.

        Returns:
            Idempotent function removing the listener.
        """
        self._listeners[collection].append(listener)

        def remove() -> None:
            if listener in self._listeners[collection]:
                self._listeners[collection].remove(listener)

        return remove

    def listener_count(self, collection: str) -> int:
        return len(self._listeners[collection])

    async def publish(self, event: ChangeEvent) -> None:
        """Announce a committed change.

        Never raises: the write it describes is already committed, so a
        broken Redis link only degrades delivery to this process.
        """
        if self.relaying:
            try:
                await self._pubsub.publish(self.CHANNEL, event.to_dict())
                return
            except RedisError:
                logger.error(
                    "Failed to publish change event, delivering locally",
                    extra={"collection": event.collection, "id": event.record_id},
                    exc_info=True,
                )
        await self.dispatch(event)

    async def dispatch(self, event: ChangeEvent) -> None:
        """Call every listener of the event's collection."""
        for listener in list(self._listeners[event.collection]):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Change listener failed",
                    extra={"collection": event.collection, "id": event.record_id},
                )

    async def start(self, timeout: float = SUBSCRIBE_TIMEOUT) -> None:
        """Start relaying events from Redis, if a pub/sub service is set.

        Returns once Redis has confirmed the subscription, so events
        published afterwards reach this process too. Until then (or if the
        relay dies first) ``publish`` keeps delivering locally.
        """
        if self._pubsub is None:
            return
        if self._relay_task is not None and not self._relay_task.done():
            return
        self._subscribed = asyncio.Event()
        self._relay_task = asyncio.create_task(
            self._relay(self._subscribed), name="change-feed-relay"
        )
        confirmed = asyncio.create_task(self._subscribed.wait())
        try:
            await asyncio.wait(
                {confirmed, self._relay_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            confirmed.cancel()

        if self.relaying:
            logger.info("Change feed relay started", extra={"channel": self.CHANNEL})
        else:
            logger.warning(
                "Change feed relay not subscribed, delivering locally",
                extra={"channel": self.CHANNEL, "timeout": timeout},
            )

    async def stop(self) -> None:
        if self._relay_task is None:
            return
        self._relay_task.cancel()
        try:
            await self._relay_task
        except asyncio.CancelledError:
            pass
        self._relay_task = None
        self._subscribed = None
        logger.info("Change feed relay stopped")

    async def _relay(self, subscribed: asyncio.Event) -> None:
        try:
            async for data in self._pubsub.subscribe(
                self.CHANNEL, on_subscribed=subscribed.set
            ):
                try:
                    event = ChangeEvent.from_dict(data)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Dropped malformed change event", extra={"data": data})
                    continue
                await self.dispatch(event)
        except RedisError:
            logger.error("Change feed relay lost its Redis connection", exc_info=True)
