"""Per-message translation cache.

ensure_translation() returns the text a viewer should see in a target
language, computing it at most once per (message, language) under normal
operation:

1. Target is the message's own language -> original text, nothing cached.
2. Cached translation present and different from the original -> cache hit.
3. Otherwise ask the provider. Success is written into the in-memory map
   and persisted in the background; the caller gets the text without
   waiting for the write. Failure returns the original text and caches
   nothing, so a later call can try again.

No lock is taken. Two concurrent misses for the same pair both call the
provider and the second write overwrites the first with equivalent text.
"""

import asyncio
from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog

from linguachat.core.exceptions import UnsupportedLanguageError
from linguachat.core.languages import is_supported
from linguachat.db.postgres import async_session_factory
from linguachat.schemas.message import MessageRead
from linguachat.services.chat.store import MessageStore
from linguachat.services.translation.adapter import TranslationAdapter

logger = structlog.get_logger(__name__)

PersistTranslation = Callable[[UUID, str, str], Awaitable[None]]


async def persist_translation(message_id: UUID, language: str, text: str) -> None:
    """Merge one translation into the stored message using its own session.

    The request session may already be closed when this runs.
    """
    async with async_session_factory() as db:
        await MessageStore(db).merge_translation(message_id, language, text)
        await db.commit()


class TranslationCacheManager:
    """Computes translations once and reuses them."""

    def __init__(
        self,
        translator: TranslationAdapter,
        persist: PersistTranslation = persist_translation,
    ) -> None:
        self._translator = translator
        self._persist = persist
        self._pending: set[asyncio.Task] = set()

    async def ensure_translation(self, message: MessageRead, target_lang: str) -> str:
        if not is_supported(target_lang):
            raise UnsupportedLanguageError(target_lang)

        if target_lang == message.original_language:
            return message.original_text

        cached = message.translated_texts.get(target_lang)
        if cached and cached != message.original_text:
            logger.debug(
                "translation_cache_hit",
                message_id=str(message.id),
                language=target_lang,
            )
            return cached

        translated = await self._translator.try_translate(
            message.original_text, target_lang, message.original_language
        )
        if translated is None:
            logger.warning(
                "translation_fallback_to_original",
                message_id=str(message.id),
                language=target_lang,
            )
            return message.original_text

        if translated == message.original_text:
            # Pass-through result: nothing worth caching.
            return translated

        message.translated_texts = {**message.translated_texts, target_lang: translated}
        self._schedule_persist(message.id, target_lang, translated)
        logger.info(
            "translation_computed",
            message_id=str(message.id),
            source=message.original_language,
            language=target_lang,
        )
        return translated

    def _schedule_persist(self, message_id: UUID, language: str, text: str) -> None:
        task = asyncio.create_task(self._persist_quietly(message_id, language, text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist_quietly(self, message_id: UUID, language: str, text: str) -> None:
        try:
            await self._persist(message_id, language, text)
            logger.debug(
                "translation_persisted",
                message_id=str(message_id),
                language=language,
            )
        except Exception as e:
            logger.error(
                "translation_persist_failed",
                message_id=str(message_id),
                language=language,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for all in-flight persistence writes (used at shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
