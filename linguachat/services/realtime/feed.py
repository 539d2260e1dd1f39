"""Per-conversation change feed.

A change event says only *what* happened to *which* message row; listeners
re-read the row themselves. Events are published on one Redis channel per
conversation and carried as JSON.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

import structlog
from redis.exceptions import RedisError

from linguachat.core.exceptions import RedisConnectionError
from linguachat.db.redis import RedisClient

logger = structlog.get_logger(__name__)

ChangeType = Literal["INSERT", "DELETE"]

CHANNEL_PREFIX = "linguachat:conversation:"


def channel_for(conversation_id: UUID) -> str:
    return f"{CHANNEL_PREFIX}{conversation_id}"


@dataclass(frozen=True)
class ChangeEvent:
    type: ChangeType
    conversation_id: UUID
    message_id: UUID | None

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.type,
                "conversation_id": str(self.conversation_id),
                "message_id": str(self.message_id) if self.message_id else None,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> ChangeEvent:
        """Parse a published payload. Raises ValueError on malformed input."""
        try:
            data = json.loads(raw)
            event_type = data["type"]
            conversation_id = UUID(data["conversation_id"])
            message_id = data.get("message_id")
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"Malformed change event: {e}") from e
        if event_type not in ("INSERT", "DELETE"):
            raise ValueError(f"Unknown change type: {event_type!r}")
        return cls(
            type=event_type,
            conversation_id=conversation_id,
            message_id=UUID(message_id) if message_id else None,
        )


class FeedListener(ABC):
    """An open subscription to one conversation's changes."""

    @abstractmethod
    def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield events until the listener is closed or the feed breaks."""

    @abstractmethod
    async def close(self) -> None:
        ...


class ChangeFeed(ABC):
    """Publish/subscribe of message change events."""

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        ...

    @abstractmethod
    async def subscribe(self, conversation_id: UUID) -> FeedListener:
        ...


class RedisFeedListener(FeedListener):
    def __init__(self, pubsub, channel: str) -> None:
        self._pubsub = pubsub
        self._channel = channel
        self._closed = False

    async def events(self) -> AsyncIterator[ChangeEvent]:
        try:
            async for raw in self._pubsub.listen():
                if self._closed:
                    return
                if raw.get("type") != "message":
                    continue
                try:
                    yield ChangeEvent.from_json(raw["data"])
                except ValueError as e:
                    logger.warning(
                        "change_event_malformed",
                        channel=self._channel,
                        error=str(e),
                    )
        except RedisError as e:
            if self._closed:
                return
            logger.error("change_feed_broken", channel=self._channel, error=str(e))
            raise RedisConnectionError(f"Change feed broken: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        except RedisError as e:
            logger.warning("change_feed_close_failed", channel=self._channel, error=str(e))


class RedisChangeFeed(ChangeFeed):
    """ChangeFeed over Redis pub/sub."""

    def __init__(self, redis: RedisClient) -> None:
        self._redis = redis

    async def publish(self, event: ChangeEvent) -> None:
        receivers = await self._redis.publish(
            channel_for(event.conversation_id), event.to_json()
        )
        logger.debug(
            "change_event_published",
            type=event.type,
            conversation_id=str(event.conversation_id),
            message_id=str(event.message_id),
            receivers=receivers,
        )

    async def subscribe(self, conversation_id: UUID) -> FeedListener:
        channel = channel_for(conversation_id)
        pubsub = await self._redis.open_pubsub(channel)
        return RedisFeedListener(pubsub, channel)


async def publish_quietly(feed: ChangeFeed, event: ChangeEvent) -> bool:
    """Publish *event*, logging instead of raising on failure."""
    try:
        await feed.publish(event)
        return True
    except Exception as e:
        logger.error(
            "change_event_publish_failed",
            type=event.type,
            conversation_id=str(event.conversation_id),
            message_id=str(event.message_id),
            error=str(e),
        )
        return False
