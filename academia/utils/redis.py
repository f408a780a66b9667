"""Optional Redis client backing the cross-process change feed."""

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionException

from academia.config import get_settings
from academia.exceptions import RedisConnectionError

logger = logging.getLogger(__name__)


class RedisManager:
    """Owns the shared Redis client.

    Redis is optional: with an empty ``REDIS_URL`` no client is created and
    the change feed stays in-process.
    """

    def __init__(self) -> None:
        self._client: Optional[Redis] = None

    @property
    def enabled(self) -> bool:
        return bool(get_settings().REDIS_URL)

    def init_client(self) -> Redis:
        """Create the client once and reuse it afterwards.

        Raises:
            RedisConnectionError: If no Redis URL is configured.
        """
        if self._client is not None:
            return self._client

        settings = get_settings()
        if not settings.REDIS_URL:
            raise RedisConnectionError("REDIS_URL is not configured")

        self._client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis client created")
        return self._client

    async def verify_connection(self) -> bool:
        """Ping Redis.

        Raises:
            RedisConnectionError: If connection fails.
        """
        try:
            client = self.init_client()
            await client.ping()
            logger.info("Redis reachable")
            return True
        except RedisConnectionException as e:
            logger.error("Redis ping failed", extra={"error": str(e)})
            raise RedisConnectionError(f"Redis unreachable: {e}") from e

    async def close(self) -> None:
        """Drop the client; the next ``init_client`` creates a fresh one."""
        if self._client is not None:
            await self._client.aclose()
            logger.info("Redis client closed")
            self._client = None

    @property
    def client(self) -> Optional[Redis]:
        """Current client, ``None`` until initialized."""
        return self._client


# Shared by the application lifespan and the change feed
redis_manager = RedisManager()


async def init_redis() -> Optional[Redis]:
    """Connect to Redis when configured.

    Returns:
        The verified client, or ``None`` when Redis is disabled.

    Raises:
        RedisConnectionError: If Redis is configured but unreachable.
    """
    if not redis_manager.enabled:
        logger.info("Redis disabled; change feed stays in-process")
        return None
    redis_manager.init_client()
    await redis_manager.verify_connection()
    return redis_manager.client


async def close_redis() -> None:
    await redis_manager.close()
