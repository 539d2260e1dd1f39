"""Turns an INSERT change notification into a viewer-ready event.

Each notification is enriched in its own short-lived database session: the
subscription outlives any request session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

import structlog

from linguachat.core.security import SessionContext
from linguachat.db.postgres import async_session_factory
from linguachat.services.chat.profiles import ProfileStore
from linguachat.services.chat.sender import sender_summary, to_message_read
from linguachat.services.chat.store import MessageStore
from linguachat.services.chat.translation_cache import TranslationCacheManager
from linguachat.services.realtime.events import MessageInserted

logger = structlog.get_logger(__name__)


@dataclass
class ChatStores:
    messages: MessageStore
    profiles: ProfileStore


StoreScope = Callable[[], AbstractAsyncContextManager[ChatStores]]


@asynccontextmanager
async def session_stores() -> AsyncIterator[ChatStores]:
    async with async_session_factory() as db:
        yield ChatStores(messages=MessageStore(db), profiles=ProfileStore(db))


class InsertEnricher:
    """Loads the inserted row, its sender and the viewer's translation."""

    def __init__(
        self,
        cache: TranslationCacheManager,
        stores: StoreScope = session_stores,
    ) -> None:
        self._cache = cache
        self._stores = stores

    async def __call__(
        self,
        conversation_id: UUID,
        message_id: UUID,
        viewer: SessionContext,
    ) -> MessageInserted | None:
        async with self._stores() as stores:
            row = await stores.messages.get(message_id)
            if row is None:
                # Deleted before we could read it.
                logger.info(
                    "insert_event_row_missing",
                    conversation_id=str(conversation_id),
                    message_id=str(message_id),
                )
                return None
            message = to_message_read(row)

            try:
                profile = await stores.profiles.get(message.sender_id)
            except Exception as e:
                logger.warning(
                    "sender_lookup_failed",
                    message_id=str(message_id),
                    error=str(e),
                )
                profile = None

        if message.sender_id != viewer.user_id and viewer.preferred_language:
            try:
                await self._cache.ensure_translation(message, viewer.preferred_language)
            except Exception as e:
                logger.warning(
                    "insert_event_translation_failed",
                    message_id=str(message_id),
                    language=viewer.preferred_language,
                    error=str(e),
                )

        return MessageInserted(
            conversation_id=conversation_id,
            message=message,
            sender=sender_summary(message.sender_id, profile),
            translated_texts=dict(message.translated_texts),
        )
