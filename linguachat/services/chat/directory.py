"""Conversation/participant directory and counterpart resolution.

Participant and profile rows may lag behind a freshly created conversation,
so the "other participant" is resolved through an ordered list of
strategies; the first one that yields a profile wins. When none does, a
placeholder is returned and the caller may retry later.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import TypeVar
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.models.conversation import (
    Conversation,
    ConversationParticipant,
    make_pair_key,
)
from linguachat.models.profile import Profile
from linguachat.schemas.profile import ProfileRead
from linguachat.services.chat.profiles import ProfileStore
from linguachat.services.chat.store import MessageStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PENDING_PARTICIPANT_ID = "new-conversation"

PENDING_PARTICIPANT = ProfileRead(
    id=PENDING_PARTICIPANT_ID,
    display_name="New Conversation",
    preferred_language="en",
    avatar_url="",
)


def is_pending(profile: ProfileRead) -> bool:
    return profile.id == PENDING_PARTICIPANT_ID


async def first_match(
    strategies: Sequence[tuple[str, Callable[[], Awaitable[T | None]]]],
) -> T | None:
    """Run strategies in order and return the first non-None result.

    A strategy that raises is logged and counts as no result.
    """
    for name, strategy in strategies:
        try:
            result = await strategy()
        except Exception as e:
            logger.warning("strategy_failed", strategy=name, error=str(e))
            continue
        if result is not None:
            logger.debug("strategy_matched", strategy=name)
            return result
    return None


class ParticipantDirectory:
    """Data access for conversations and their participants."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_conversation(self, conversation_id: UUID) -> Conversation | None:
        result = await self._db.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def participant_ids(self, conversation_id: UUID) -> list[UUID]:
        result = await self._db.execute(
            select(ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id == conversation_id
            )
        )
        return list(result.scalars().all())

    async def is_participant(self, conversation_id: UUID, user_id: UUID) -> bool:
        result = await self._db.execute(
            select(ConversationParticipant.id).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def find_shared_conversation(
        self, user_a: UUID, user_b: UUID
    ) -> Conversation | None:
        result = await self._db.execute(
            select(Conversation).where(
                Conversation.pair_key == make_pair_key(user_a, user_b)
            )
        )
        return result.scalar_one_or_none()

    async def conversations_for_user(self, user_id: UUID) -> list[Conversation]:
        result = await self._db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(ConversationParticipant.user_id == user_id)
        )
        return list(result.scalars().all())

    async def create_conversation(
        self, created_by: UUID, other_user_id: UUID
    ) -> Conversation:
        """Insert a conversation and both participant rows (flushed, not committed)."""
        conversation = Conversation(
            created_by=created_by,
            pair_key=make_pair_key(created_by, other_user_id),
        )
        self._db.add(conversation)
        await self._db.flush()
        self._db.add_all(
            [
                ConversationParticipant(conversation_id=conversation.id, user_id=created_by),
                ConversationParticipant(conversation_id=conversation.id, user_id=other_user_id),
            ]
        )
        await self._db.flush()
        return conversation

    async def touch(self, conversation_id: UUID) -> None:
        await self._db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=datetime.now(timezone.utc))
        )

    async def delete_participants(self, conversation_id: UUID) -> None:
        await self._db.execute(
            delete(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id
            )
        )

    async def delete_conversation(self, conversation_id: UUID) -> None:
        await self._db.execute(
            delete(Conversation).where(Conversation.id == conversation_id)
        )


class CounterpartResolver:
    """Resolves the other participant of a two-party conversation."""

    def __init__(
        self,
        directory: ParticipantDirectory,
        messages: MessageStore,
        profiles: ProfileStore,
        retry_delays: Sequence[float] = (2.0, 5.0),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._directory = directory
        self._messages = messages
        self._profiles = profiles
        self._retry_delays = tuple(retry_delays)
        self._sleep = sleep

    async def _profile(self, user_id: UUID | None) -> ProfileRead | None:
        if user_id is None:
            return None
        profile: Profile | None = await self._profiles.get(user_id)
        return ProfileRead.model_validate(profile) if profile is not None else None

    async def resolve(self, conversation_id: UUID, viewer_id: UUID) -> ProfileRead:
        """Return the counterpart profile, or PENDING_PARTICIPANT if unresolvable."""

        async def from_participants() -> ProfileRead | None:
            for user_id in await self._directory.participant_ids(conversation_id):
                if user_id != viewer_id:
                    return await self._profile(user_id)
            return None

        async def from_messages() -> ProfileRead | None:
            return await self._profile(
                await self._messages.find_sender_other_than(conversation_id, viewer_id)
            )

        async def from_creator() -> ProfileRead | None:
            conversation = await self._directory.get_conversation(conversation_id)
            if conversation is None or conversation.created_by == viewer_id:
                return None
            return await self._profile(conversation.created_by)

        profile = await first_match(
            [
                ("participants", from_participants),
                ("messages", from_messages),
                ("creator", from_creator),
            ]
        )
        if profile is None:
            logger.info(
                "counterpart_unresolved",
                conversation_id=str(conversation_id),
                viewer_id=str(viewer_id),
            )
            return PENDING_PARTICIPANT
        return profile

    async def resolve_with_retry(
        self, conversation_id: UUID, viewer_id: UUID
    ) -> ProfileRead:
        """resolve(), retried after each configured delay while still pending."""
        profile = await self.resolve(conversation_id, viewer_id)
        for attempt, delay in enumerate(self._retry_delays, start=1):
            if not is_pending(profile):
                break
            await self._sleep(delay)
            logger.debug(
                "counterpart_retry",
                conversation_id=str(conversation_id),
                attempt=attempt,
                delay=delay,
            )
            profile = await self.resolve(conversation_id, viewer_id)
        return profile
