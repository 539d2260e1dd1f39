"""WebSocket stream of a conversation's live updates.

Connect with ``/v1/ws/conversations/{id}?token=<access token>``. The server
sends the conversation history, then ``message_inserted`` /
``message_deleted`` / ``subscription_state`` events. The client may switch
conversations with ``{"action": "open", "conversation_id": ...}`` or stop
listening with ``{"action": "close"}``; only one conversation is live at a
time.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.core.config import settings
from linguachat.core.exceptions import LinguaChatError, NotParticipantError
from linguachat.core.security import SessionContext, decode_access_token
from linguachat.db.postgres import async_session_factory
from linguachat.models.profile import Profile
from linguachat.services.chat.directory import ParticipantDirectory
from linguachat.services.chat.profiles import ProfileStore
from linguachat.services.chat.sender import MessageService
from linguachat.services.chat.store import MessageStore
from linguachat.services.realtime.enricher import InsertEnricher
from linguachat.services.realtime.events import MessageDeleted, MessageInserted
from linguachat.services.realtime.manager import SubscriptionManager
from linguachat.services.realtime.view import ClientView

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["realtime"])


def _message_service(websocket: WebSocket, db: AsyncSession) -> MessageService:
    state = websocket.app.state
    return MessageService(
        db=db,
        messages=MessageStore(db),
        directory=ParticipantDirectory(db),
        profiles=ProfileStore(db),
        translator=state.translation_adapter,
        cache=state.translation_cache,
        feed=state.change_feed,
    )


async def _authenticate(token: str) -> SessionContext:
    user_id = decode_access_token(token)
    async with async_session_factory() as db:
        profile = await ProfileStore(db).get(user_id)
    return _context_for(user_id, profile)


def _context_for(user_id: UUID, profile: Profile | None) -> SessionContext:
    if profile is None:
        return SessionContext(user_id=user_id)
    return SessionContext(
        user_id=user_id,
        preferred_language=profile.preferred_language,
        display_name=profile.display_name,
    )


class _ConversationStream:
    """Glue between one WebSocket and its SubscriptionManager."""

    def __init__(self, websocket: WebSocket, ctx: SessionContext) -> None:
        self._ws = websocket
        self._ctx = ctx
        self._manager = SubscriptionManager(
            viewer=ctx,
            feed=websocket.app.state.change_feed,
            enricher=InsertEnricher(websocket.app.state.translation_cache),
            subscribe_timeout=settings.realtime_subscribe_timeout_seconds,
            resubscribe_delay=settings.realtime_resubscribe_delay_seconds,
        )
        self._view: ClientView | None = None
        self._lock = asyncio.Lock()

    async def _send_error(self, exc: LinguaChatError) -> None:
        await self._ws.send_json({"type": "error", **exc.to_dict()})

    async def open(self, conversation_id: UUID) -> bool:
        """Go live on *conversation_id*, then send its history.

        The caller's profile is read again here, so a language change made
        after the socket connected applies to the next conversation opened.
        """
        async with async_session_factory() as db:
            profile = await ProfileStore(db).get(self._ctx.user_id)
            member = await ParticipantDirectory(db).is_participant(
                conversation_id, self._ctx.user_id
            )
        if not member:
            await self._send_error(NotParticipantError())
            return False
        self._ctx = _context_for(self._ctx.user_id, profile)

        async def load_history():
            async with async_session_factory() as db:
                return await _message_service(self._ws, db).list_messages(
                    self._ctx, conversation_id
                )

        # Events wait for the lock, so the client gets the history first.
        async with self._lock:
            self._view = ClientView(self._ctx.user_id, self._ctx.preferred_language)
            try:
                history = await self._manager.open_with_history(
                    conversation_id, load_history, viewer=self._ctx
                )
            except LinguaChatError as e:
                self._view = None
                await self._send_error(e)
                return False
            self._view.seed(history)
            await self._ws.send_json(
                {
                    "type": "history",
                    "conversation_id": str(conversation_id),
                    "messages": [m.model_dump(mode="json") for m in history],
                }
            )
        return True

    async def close_conversation(self) -> None:
        await self._manager.close_current()
        self._view = None

    async def read_commands(self) -> None:
        while True:
            command: dict[str, Any] = await self._ws.receive_json()
            action = command.get("action")
            if action == "open":
                try:
                    conversation_id = UUID(str(command.get("conversation_id")))
                except ValueError:
                    await self._ws.send_json(
                        {"type": "error", "error": {"code": "INVALID_ACTION", "message": "Invalid conversation id"}}
                    )
                    continue
                await self.open(conversation_id)
            elif action == "close":
                await self.close_conversation()
            else:
                await self._ws.send_json(
                    {"type": "error", "error": {"code": "INVALID_ACTION", "message": f"Unknown action: {action!r}"}}
                )

    async def forward_events(self) -> None:
        while True:
            event = await self._manager.next_event()
            async with self._lock:
                if event.conversation_id != self._manager.conversation_id:
                    continue
                if isinstance(event, (MessageInserted, MessageDeleted)):
                    if self._view is None or not self._view.apply(event):
                        continue
                await self._ws.send_json(event.to_payload())

    async def shutdown(self) -> None:
        await self._manager.close()


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_stream(
    websocket: WebSocket,
    conversation_id: UUID,
    token: str = Query(default=""),
) -> None:
    try:
        ctx = await _authenticate(token)
    except LinguaChatError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    stream = _ConversationStream(websocket, ctx)
    logger.info("ws_connected", user_id=str(ctx.user_id), conversation_id=str(conversation_id))

    tasks: list[asyncio.Task] = []
    try:
        if not await stream.open(conversation_id):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        tasks = [
            asyncio.create_task(stream.read_commands()),
            asyncio.create_task(stream.forward_events()),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("ws_stream_failed", user_id=str(ctx.user_id), error=str(exc))
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await stream.shutdown()
        logger.info("ws_disconnected", user_id=str(ctx.user_id))
