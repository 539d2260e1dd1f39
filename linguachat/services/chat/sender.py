"""Message send, delete and read paths.

MessageService.send_message() does exactly these things in order:
1. Reject empty text and non-participants (nothing is written)
2. Detect the source language (falls back to the default language)
3. Insert the message with an empty translation map
4. Bump the conversation's updated_at and commit
5. Publish an INSERT change event (failure is logged, not raised)
6. Return the row enriched with the sender's profile
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.core.config import settings
from linguachat.core.exceptions import (
    EmptyMessageError,
    MessageNotFoundError,
    NotMessageOwnerError,
    NotParticipantError,
    UnsupportedLanguageError,
)
from linguachat.core.languages import is_supported
from linguachat.core.security import SessionContext
from linguachat.models.message import Message
from linguachat.models.profile import Profile
from linguachat.schemas.message import MessageRead, MessageWithSender, TranslationRead
from linguachat.schemas.profile import SenderSummary
from linguachat.services.chat.directory import ParticipantDirectory
from linguachat.services.chat.profiles import UNKNOWN_DISPLAY_NAME, ProfileStore
from linguachat.services.chat.store import MessageStore
from linguachat.services.chat.translation_cache import TranslationCacheManager
from linguachat.services.realtime.feed import ChangeEvent, ChangeFeed, publish_quietly
from linguachat.services.translation.adapter import TranslationAdapter

logger = structlog.get_logger(__name__)


def to_message_read(row: Message) -> MessageRead:
    return MessageRead(
        id=row.id,
        conversation_id=row.conversation_id,
        sender_id=row.sender_id,
        original_text=row.original_text,
        original_language=row.original_language,
        translated_texts=dict(row.translated_texts or {}),
        created_at=row.created_at,
    )


def sender_summary(sender_id: UUID, profile: Profile | None) -> SenderSummary:
    """Summary of the sender, or an 'Unknown User' stand-in if the profile is gone."""
    if profile is None:
        return SenderSummary(id=sender_id, display_name=UNKNOWN_DISPLAY_NAME)
    return SenderSummary(
        id=profile.id,
        display_name=profile.display_name,
        avatar_url=profile.avatar_url,
    )


class MessageService:
    """Send, delete, list and translate messages on behalf of a caller."""

    def __init__(
        self,
        db: AsyncSession,
        messages: MessageStore,
        directory: ParticipantDirectory,
        profiles: ProfileStore,
        translator: TranslationAdapter,
        cache: TranslationCacheManager,
        feed: ChangeFeed,
        translation_concurrency: int = settings.translation_concurrency,
    ) -> None:
        self._db = db
        self._messages = messages
        self._directory = directory
        self._profiles = profiles
        self._translator = translator
        self._cache = cache
        self._feed = feed
        self._translation_concurrency = max(1, translation_concurrency)

    async def _require_participant(self, conversation_id: UUID, user_id: UUID) -> None:
        if not await self._directory.is_participant(conversation_id, user_id):
            logger.warning(
                "not_a_participant",
                conversation_id=str(conversation_id),
                user_id=str(user_id),
            )
            raise NotParticipantError()

    async def _require_message(self, message_id: UUID) -> Message:
        row = await self._messages.get(message_id)
        if row is None:
            raise MessageNotFoundError()
        return row

    async def send_message(
        self,
        ctx: SessionContext,
        conversation_id: UUID,
        text: str,
    ) -> MessageWithSender:
        body = text.strip()
        if not body:
            raise EmptyMessageError()
        await self._require_participant(conversation_id, ctx.user_id)

        language = await self._translator.detect(body)
        row = await self._messages.insert(
            conversation_id=conversation_id,
            sender_id=ctx.user_id,
            original_text=body,
            original_language=language,
        )
        await self._directory.touch(conversation_id)
        await self._db.commit()

        logger.info(
            "message_sent",
            message_id=str(row.id),
            conversation_id=str(conversation_id),
            language=language,
        )
        await publish_quietly(
            self._feed,
            ChangeEvent(type="INSERT", conversation_id=conversation_id, message_id=row.id),
        )

        profile = await self._profiles.get(ctx.user_id)
        return MessageWithSender(
            **to_message_read(row).model_dump(),
            sender=sender_summary(ctx.user_id, profile),
        )

    async def delete_message(self, ctx: SessionContext, message_id: UUID) -> None:
        row = await self._require_message(message_id)
        if row.sender_id != ctx.user_id:
            logger.warning(
                "message_delete_forbidden",
                message_id=str(message_id),
                user_id=str(ctx.user_id),
            )
            raise NotMessageOwnerError()

        if not await self._messages.delete_owned(message_id, ctx.user_id):
            # Removed concurrently between the lookup and the delete.
            raise MessageNotFoundError()
        await self._db.commit()

        logger.info("message_deleted", message_id=str(message_id))
        await publish_quietly(
            self._feed,
            ChangeEvent(
                type="DELETE",
                conversation_id=row.conversation_id,
                message_id=message_id,
            ),
        )

    async def list_messages(
        self,
        ctx: SessionContext,
        conversation_id: UUID,
    ) -> list[MessageWithSender]:
        """Conversation history, oldest first, translated for the caller."""
        await self._require_participant(conversation_id, ctx.user_id)

        rows = await self._messages.list_for_conversation(conversation_id)
        profiles = await self._profiles.get_many(row.sender_id for row in rows)
        reads = [to_message_read(row) for row in rows]

        target = ctx.preferred_language
        if target and is_supported(target):
            limit = asyncio.Semaphore(self._translation_concurrency)

            async def translate(read: MessageRead) -> None:
                async with limit:
                    await self._cache.ensure_translation(read, target)

            await asyncio.gather(
                *(translate(read) for read in reads if read.sender_id != ctx.user_id)
            )

        return [
            MessageWithSender(
                **read.model_dump(),
                sender=sender_summary(read.sender_id, profiles.get(read.sender_id)),
            )
            for read in reads
        ]

    async def save_translation(
        self,
        ctx: SessionContext,
        message_id: UUID,
        target_language: str,
        translated_text: str,
    ) -> None:
        """Merge a client-supplied translation. Repeating the call is harmless."""
        row = await self._require_message(message_id)
        await self._require_participant(row.conversation_id, ctx.user_id)
        if not is_supported(target_language):
            raise UnsupportedLanguageError(target_language)

        if target_language == row.original_language:
            logger.debug(
                "translation_save_skipped_own_language",
                message_id=str(message_id),
                language=target_language,
            )
            return

        await self._messages.merge_translation(message_id, target_language, translated_text)
        await self._db.commit()

    async def translate_message(
        self,
        ctx: SessionContext,
        message_id: UUID,
        language: str,
    ) -> TranslationRead:
        """Translate one message on demand through the cache."""
        row = await self._require_message(message_id)
        await self._require_participant(row.conversation_id, ctx.user_id)

        text = await self._cache.ensure_translation(to_message_read(row), language)
        return TranslationRead(message_id=message_id, language=language, text=text)
