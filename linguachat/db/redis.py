"""Redis connection used as the change-notification backend.

Message inserts and deletes are published on a per-conversation channel and
realtime subscriptions listen on the same channel. Command failures are
re-raised as RedisConnectionError (503).
"""

import structlog
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from linguachat.core.config import settings
from linguachat.core.exceptions import RedisConnectionError

logger = structlog.get_logger(__name__)


class RedisClient:
    """Pub/sub helpers over one redis.asyncio connection pool."""

    def __init__(self, client: Redis) -> None:
        self._r = client

    async def close(self) -> None:
        await self._r.aclose()

    async def ping(self) -> bool:
        try:
            return bool(await self._r.ping())
        except RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    async def publish(self, channel: str, payload: str) -> int:
        """PUBLISH a payload. Returns the number of receiving subscribers."""
        try:
            return await self._r.publish(channel, payload)
        except RedisError as e:
            logger.error("redis_publish_failed", channel=channel, error=str(e))
            raise RedisConnectionError(f"Redis PUBLISH failed: {e}") from e

    async def open_pubsub(self, channel: str) -> PubSub:
        """Subscribe to *channel*. Caller owns the returned PubSub and must close it."""
        pubsub = self._r.pubsub()
        try:
            await pubsub.subscribe(channel)
        except RedisError as e:
            logger.error("redis_subscribe_failed", channel=channel, error=str(e))
            await pubsub.aclose()
            raise RedisConnectionError(f"Redis SUBSCRIBE failed: {e}") from e
        except BaseException:
            # Cancelled or timed out mid-subscribe: nobody else holds this PubSub.
            await pubsub.aclose()
            raise
        return pubsub


_shared: RedisClient | None = None


async def get_redis() -> RedisClient:
    """Process-wide client, created on first use. Also a FastAPI dependency."""
    global _shared
    if _shared is None:
        _shared = RedisClient(Redis.from_url(settings.redis_url, decode_responses=True))
    return _shared


async def close_redis() -> None:
    global _shared
    if _shared is not None:
        logger.info("redis_shutdown")
        await _shared.close()
        _shared = None
