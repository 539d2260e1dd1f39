"""Conversation lifecycle: start, list, delete, counterpart lookup."""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.core.exceptions import (
    ConversationCreationError,
    ConversationNotFoundError,
    InvalidConversationError,
    NotParticipantError,
    ProfileNotFoundError,
)
from linguachat.core.security import SessionContext
from linguachat.models.conversation import Conversation
from linguachat.schemas.conversation import (
    ConversationRead,
    ConversationStartResponse,
    ConversationSummary,
    LastMessage,
)
from linguachat.schemas.profile import ProfileRead, SenderSummary
from linguachat.services.chat.directory import (
    CounterpartResolver,
    ParticipantDirectory,
    is_pending,
)
from linguachat.services.chat.profiles import ProfileStore
from linguachat.services.chat.store import MessageStore
from linguachat.services.realtime.feed import ChangeEvent, ChangeFeed, publish_quietly

logger = structlog.get_logger(__name__)


class ConversationService:
    """Two-party conversations for the calling user."""

    def __init__(
        self,
        db: AsyncSession,
        directory: ParticipantDirectory,
        messages: MessageStore,
        profiles: ProfileStore,
        resolver: CounterpartResolver,
        feed: ChangeFeed,
    ) -> None:
        self._db = db
        self._directory = directory
        self._messages = messages
        self._profiles = profiles
        self._resolver = resolver
        self._feed = feed

    async def _require_membership(
        self, ctx: SessionContext, conversation_id: UUID
    ) -> Conversation:
        conversation = await self._directory.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError()
        if not await self._directory.is_participant(conversation_id, ctx.user_id):
            raise NotParticipantError()
        return conversation

    async def start_conversation(
        self, ctx: SessionContext, contact_id: UUID
    ) -> ConversationStartResponse:
        """Open the conversation with *contact_id*, creating it only if none exists."""
        if contact_id == ctx.user_id:
            raise InvalidConversationError("You cannot start a conversation with yourself")
        contact = await self._profiles.get(contact_id)
        if contact is None:
            raise ProfileNotFoundError("Contact not found")

        existing = await self._directory.find_shared_conversation(ctx.user_id, contact_id)
        if existing is not None:
            logger.info("conversation_reused", conversation_id=str(existing.id))
            return self._start_response(existing, contact, created=False)

        try:
            conversation = await self._directory.create_conversation(ctx.user_id, contact_id)
            await self._db.commit()
        except IntegrityError:
            # Another request created the same pair first.
            await self._db.rollback()
            winner = await self._directory.find_shared_conversation(ctx.user_id, contact_id)
            if winner is None:
                raise ConversationCreationError()
            logger.info("conversation_create_race_lost", conversation_id=str(winner.id))
            return self._start_response(winner, contact, created=False)
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error(
                "conversation_create_failed",
                user_id=str(ctx.user_id),
                contact_id=str(contact_id),
                error=str(e),
            )
            raise ConversationCreationError() from e

        logger.info(
            "conversation_created",
            conversation_id=str(conversation.id),
            created_by=str(ctx.user_id),
        )
        return self._start_response(conversation, contact, created=True)

    @staticmethod
    def _start_response(conversation, contact, created: bool) -> ConversationStartResponse:
        return ConversationStartResponse(
            conversation=ConversationRead.model_validate(conversation),
            counterpart=ProfileRead.model_validate(contact),
            created=created,
        )

    async def list_conversations(self, ctx: SessionContext) -> list[ConversationSummary]:
        """The caller's conversations, most recently active first."""
        summaries: list[ConversationSummary] = []
        for conversation in await self._directory.conversations_for_user(ctx.user_id):
            counterpart = await self._resolver.resolve(conversation.id, ctx.user_id)
            latest = await self._messages.latest_for_conversation(conversation.id)
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    other_participant=SenderSummary(
                        id=counterpart.id,
                        display_name=counterpart.display_name,
                        avatar_url=counterpart.avatar_url,
                    ),
                    last_message=LastMessage.model_validate(latest) if latest else None,
                )
            )
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    async def delete_conversation(self, ctx: SessionContext, conversation_id: UUID) -> None:
        """Remove messages, participants and the conversation in one transaction."""
        await self._require_membership(ctx, conversation_id)

        try:
            removed = await self._messages.delete_for_conversation(conversation_id)
            await self._directory.delete_participants(conversation_id)
            await self._directory.delete_conversation(conversation_id)
            await self._db.commit()
        except SQLAlchemyError:
            await self._db.rollback()
            logger.error("conversation_delete_failed", conversation_id=str(conversation_id))
            raise

        logger.info(
            "conversation_deleted",
            conversation_id=str(conversation_id),
            messages_removed=len(removed),
        )
        for message_id in removed:
            await publish_quietly(
                self._feed,
                ChangeEvent(
                    type="DELETE",
                    conversation_id=conversation_id,
                    message_id=message_id,
                ),
            )

    async def get_counterpart(
        self,
        ctx: SessionContext,
        conversation_id: UUID,
        retry: bool = False,
    ) -> ProfileRead | None:
        """The other participant, or None while it cannot be resolved yet."""
        await self._require_membership(ctx, conversation_id)
        if retry:
            profile = await self._resolver.resolve_with_retry(conversation_id, ctx.user_id)
        else:
            profile = await self._resolver.resolve(conversation_id, ctx.user_id)
        return None if is_pending(profile) else profile
