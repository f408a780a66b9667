"""Redis pub/sub service for real-time messaging."""

import json
import logging
from typing import Any, AsyncIterator, Callable, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class PubSubService:
    """Redis pub/sub wrapper with JSON payloads.

    Used by the change feed to fan write notifications out to every
    application process.
    """

    def __init__(self, redis: Redis) -> None:
        """Initialize PubSubService with Redis client.

        Args:
            redis: Async Redis client instance.
        """
        self._redis = redis

    async def publish(self, channel: str, data: dict[str, Any]) -> int:
        """Publish data to a Redis channel.

        Args:
            channel: Channel name to publish to.
            data: Dictionary data to publish (will be JSON serialized).

        Returns:
            Number of subscribers that received the message.
        """
        receivers = await self._redis.publish(channel, json.dumps(data))
        logger.debug(
            "Published message to channel",
            extra={"channel": channel, "receivers": receivers},
        )
        return receivers

    async def subscribe(
        self, channel: str, on_subscribed: Optional[Callable[[], None]] = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Subscribe to a Redis channel and yield decoded messages.

        Malformed payloads are logged and skipped.

        Args:
            channel: Channel name to subscribe to.
            on_subscribed: Called once Redis confirms the subscription; from
                then on no message published to the channel is missed.

        Yields:
            Dictionary data from published messages.
        """
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        try:
            async for message in pubsub.listen():
                if message["type"] == "subscribe":
                    if on_subscribed is not None:
                        on_subscribed()
                    continue
                if message["type"] != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning(
                        "Dropped malformed pub/sub payload",
                        extra={"channel": channel},
                    )
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.close()
