"""One live conversation subscription per client session."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import UUID

import structlog

from linguachat.core.security import SessionContext
from linguachat.services.realtime.events import RealtimeEvent
from linguachat.services.realtime.feed import ChangeFeed
from linguachat.services.realtime.subscription import ConversationSubscription, Enricher

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SubscriptionManager:
    """Owns the session's subscription and its outbox.

    Switching conversations closes the previous subscription before the next
    one subscribes. Events still queued for a conversation that is no longer
    open are discarded by next_event().
    """

    def __init__(
        self,
        viewer: SessionContext,
        feed: ChangeFeed,
        enricher: Enricher,
        subscribe_timeout: float = 10.0,
        resubscribe_delay: float = 2.0,
    ) -> None:
        self._viewer = viewer
        self._feed = feed
        self._enricher = enricher
        self._subscribe_timeout = subscribe_timeout
        self._resubscribe_delay = resubscribe_delay
        self.outbox: asyncio.Queue[RealtimeEvent] = asyncio.Queue()
        self._current: ConversationSubscription | None = None

    @property
    def current(self) -> ConversationSubscription | None:
        return self._current

    @property
    def viewer(self) -> SessionContext:
        return self._viewer

    @property
    def conversation_id(self) -> UUID | None:
        return self._current.conversation_id if self._current else None

    async def switch_to(self, conversation_id: UUID) -> ConversationSubscription:
        if self._current is not None and self._current.conversation_id == conversation_id:
            return self._current
        await self.close_current()

        subscription = ConversationSubscription(
            conversation_id=conversation_id,
            viewer=self._viewer,
            feed=self._feed,
            enricher=self._enricher,
            outbox=self.outbox,
            subscribe_timeout=self._subscribe_timeout,
            resubscribe_delay=self._resubscribe_delay,
        )
        self._current = subscription
        state = await subscription.start()
        logger.info(
            "conversation_opened",
            conversation_id=str(conversation_id),
            user_id=str(self._viewer.user_id),
            state=state.value,
        )
        return subscription

    async def open_with_history(
        self,
        conversation_id: UUID,
        load_history: Callable[[], Awaitable[T]],
        viewer: SessionContext | None = None,
    ) -> T:
        """Go live on *conversation_id*, then read its history.

        Subscribing first means an insert committed while the history is read
        reaches the client as a history row, an event, or both; the view drops
        the duplicate. A changed *viewer* (say, a new preferred language)
        replaces the current subscription. If loading fails the subscription
        is closed again.
        """
        if viewer is not None and viewer != self._viewer:
            await self.close_current()
            self._viewer = viewer
        await self.switch_to(conversation_id)
        try:
            return await load_history()
        except BaseException:
            await self.close_current()
            raise

    async def close_current(self) -> None:
        subscription, self._current = self._current, None
        if subscription is not None:
            await subscription.close()

    async def next_event(self) -> RealtimeEvent:
        """Next event belonging to the currently open conversation."""
        while True:
            event = await self.outbox.get()
            if self._current is not None and event.conversation_id == self._current.conversation_id:
                return event

    async def close(self) -> None:
        await self.close_current()
