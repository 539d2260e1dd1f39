"""Append-only message store backed by PostgreSQL.

Messages are inserted and deleted, never edited. The only in-place change
is merging a computed translation into translated_texts, done with a JSONB
concatenation so concurrent writers of different languages do not clobber
each other (same language: last write wins).
"""

from uuid import UUID

import structlog
from sqlalchemy import cast, delete, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.models.message import Message

logger = structlog.get_logger(__name__)


class MessageStore:
    """Data access for the messages table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def insert(
        self,
        conversation_id: UUID,
        sender_id: UUID,
        original_text: str,
        original_language: str,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            original_text=original_text,
            original_language=original_language,
            translated_texts={},
        )
        self._db.add(message)
        await self._db.flush()
        return message

    async def get(self, message_id: UUID) -> Message | None:
        result = await self._db.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def list_for_conversation(self, conversation_id: UUID) -> list[Message]:
        result = await self._db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def latest_for_conversation(self, conversation_id: UUID) -> Message | None:
        result = await self._db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_sender_other_than(
        self, conversation_id: UUID, user_id: UUID
    ) -> UUID | None:
        """Sender id of any message in the conversation not sent by *user_id*."""
        result = await self._db.execute(
            select(Message.sender_id)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete_owned(self, message_id: UUID, sender_id: UUID) -> bool:
        """Delete a message only if *sender_id* sent it. Returns True if a row was removed."""
        result = await self._db.execute(
            delete(Message).where(
                Message.id == message_id,
                Message.sender_id == sender_id,
            )
        )
        return (result.rowcount or 0) > 0

    async def delete_for_conversation(self, conversation_id: UUID) -> list[UUID]:
        """Delete every message of a conversation, returning the removed ids."""
        result = await self._db.execute(
            delete(Message)
            .where(Message.conversation_id == conversation_id)
            .returning(Message.id)
        )
        return list(result.scalars().all())

    async def merge_translation(
        self, message_id: UUID, language: str, text: str
    ) -> bool:
        """Merge {language: text} into the message's translation map."""
        result = await self._db.execute(
            update(Message)
            .where(Message.id == message_id)
            .values(
                translated_texts=Message.translated_texts.op("||")(
                    cast({language: text}, JSONB)
                )
            )
        )
        updated = (result.rowcount or 0) > 0
        logger.debug(
            "translation_merged",
            message_id=str(message_id),
            language=language,
            updated=updated,
        )
        return updated
