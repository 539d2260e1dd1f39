"""Per-conversation subscription actor.

State machine:

    UNSUBSCRIBED -> SUBSCRIBING -> SUBSCRIBED <-> {ERROR, TIMED_OUT}
    close() from any state -> UNSUBSCRIBED

The actor listens to the conversation's change feed, enriches each INSERT
for its viewer and puts typed events on an outbox queue. A broken or slow
feed is retried after a fixed delay until the subscription is closed.

Enrichment of an INSERT runs in its own task and is not cancelled by
close(); a late result still warms the translation cache but is not
delivered.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog

from linguachat.core.security import SessionContext
from linguachat.services.realtime.events import (
    MessageDeleted,
    MessageInserted,
    RealtimeEvent,
    SubscriptionState,
    SubscriptionStateChanged,
)
from linguachat.services.realtime.feed import ChangeEvent, ChangeFeed, FeedListener

logger = structlog.get_logger(__name__)

Enricher = Callable[[UUID, UUID, SessionContext], Awaitable[MessageInserted | None]]


class ConversationSubscription:
    def __init__(
        self,
        conversation_id: UUID,
        viewer: SessionContext,
        feed: ChangeFeed,
        enricher: Enricher,
        outbox: asyncio.Queue,
        subscribe_timeout: float = 10.0,
        resubscribe_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.conversation_id = conversation_id
        self._viewer = viewer
        self._feed = feed
        self._enricher = enricher
        self._outbox = outbox
        self._subscribe_timeout = subscribe_timeout
        self._resubscribe_delay = resubscribe_delay
        self._sleep = sleep

        self._state = SubscriptionState.UNSUBSCRIBED
        self._closed = False
        self._runner: asyncio.Task | None = None
        self._listener: FeedListener | None = None
        self._enrichments: set[asyncio.Task] = set()
        self._first_attempt = asyncio.Event()

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_state(self, state: SubscriptionState) -> None:
        if state == self._state:
            return
        logger.debug(
            "subscription_state_changed",
            conversation_id=str(self.conversation_id),
            previous=self._state.value,
            state=state.value,
        )
        self._state = state
        self._emit(SubscriptionStateChanged(self.conversation_id, state))

    def _emit(self, event: RealtimeEvent) -> None:
        if self._closed:
            return
        self._outbox.put_nowait(event)

    async def start(self) -> SubscriptionState:
        """Begin listening. Returns the state after the first subscribe attempt."""
        if self._runner is not None:
            return self._state
        self._runner = asyncio.create_task(self._run())
        await self._first_attempt.wait()
        return self._state

    async def _subscribe_once(self) -> FeedListener | None:
        self._set_state(SubscriptionState.SUBSCRIBING)
        try:
            listener = await asyncio.wait_for(
                self._feed.subscribe(self.conversation_id),
                timeout=self._subscribe_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "subscription_timed_out",
                conversation_id=str(self.conversation_id),
                timeout=self._subscribe_timeout,
            )
            self._set_state(SubscriptionState.TIMED_OUT)
            return None
        except Exception as e:
            logger.error(
                "subscription_failed",
                conversation_id=str(self.conversation_id),
                error=str(e),
            )
            self._set_state(SubscriptionState.ERROR)
            return None
        self._set_state(SubscriptionState.SUBSCRIBED)
        return listener

    async def _run(self) -> None:
        while not self._closed:
            listener = await self._subscribe_once()
            self._first_attempt.set()
            if listener is not None:
                self._listener = listener
                try:
                    async for event in listener.events():
                        if self._closed:
                            break
                        await self.handle(event)
                    if not self._closed:
                        # Feed ended without us asking it to.
                        self._set_state(SubscriptionState.ERROR)
                except Exception as e:
                    if self._closed:
                        break
                    logger.error(
                        "subscription_feed_error",
                        conversation_id=str(self.conversation_id),
                        error=str(e),
                    )
                    self._set_state(SubscriptionState.ERROR)
                finally:
                    self._listener = None
                    await listener.close()
            if self._closed:
                break
            await self._sleep(self._resubscribe_delay)
            logger.info(
                "subscription_retrying",
                conversation_id=str(self.conversation_id),
            )

    async def handle(self, event: ChangeEvent) -> None:
        """Route one change notification for this conversation."""
        if event.conversation_id != self.conversation_id:
            return
        if event.message_id is None:
            logger.warning(
                "change_event_missing_id",
                conversation_id=str(self.conversation_id),
                type=event.type,
            )
            return

        if event.type == "DELETE":
            self._emit(MessageDeleted(self.conversation_id, event.message_id))
            return

        task = asyncio.create_task(self._enrich(event.message_id))
        self._enrichments.add(task)
        task.add_done_callback(self._enrichments.discard)

    async def _enrich(self, message_id: UUID) -> None:
        try:
            inserted = await self._enricher(self.conversation_id, message_id, self._viewer)
        except Exception as e:
            logger.error(
                "insert_event_enrichment_failed",
                conversation_id=str(self.conversation_id),
                message_id=str(message_id),
                error=str(e),
            )
            return
        if inserted is not None:
            self._emit(inserted)

    async def drain(self) -> None:
        """Wait for in-flight enrichments."""
        if self._enrichments:
            await asyncio.gather(*list(self._enrichments), return_exceptions=True)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        if self._listener is not None:
            await self._listener.close()
            self._listener = None
        self._state = SubscriptionState.UNSUBSCRIBED
        logger.debug("subscription_closed", conversation_id=str(self.conversation_id))
