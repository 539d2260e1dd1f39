"""Conversation endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from linguachat.api.deps import (
    get_conversation_service,
    get_current_context,
    get_message_service,
)
from linguachat.core.security import SessionContext
from linguachat.schemas.conversation import (
    ConversationStartRequest,
    ConversationStartResponse,
    ConversationSummary,
    ParticipantResponse,
)
from linguachat.schemas.message import MessageSendRequest, MessageWithSender, SuccessResponse
from linguachat.services.chat.conversations import ConversationService
from linguachat.services.chat.sender import MessageService

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("", response_model=ConversationStartResponse)
async def start_conversation(
    body: ConversationStartRequest,
    ctx: SessionContext = Depends(get_current_context),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationStartResponse:
    """Open the conversation with a contact, creating it on first use."""
    return await service.start_conversation(ctx, body.contact_id)


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(
    ctx: SessionContext = Depends(get_current_context),
    service: ConversationService = Depends(get_conversation_service),
) -> list[ConversationSummary]:
    return await service.list_conversations(ctx)


@router.delete("/{conversation_id}", response_model=SuccessResponse)
async def delete_conversation(
    conversation_id: UUID,
    ctx: SessionContext = Depends(get_current_context),
    service: ConversationService = Depends(get_conversation_service),
) -> SuccessResponse:
    await service.delete_conversation(ctx, conversation_id)
    return SuccessResponse()


@router.get("/{conversation_id}/participants", response_model=ParticipantResponse)
async def get_participant(
    conversation_id: UUID,
    ctx: SessionContext = Depends(get_current_context),
    service: ConversationService = Depends(get_conversation_service),
) -> ParticipantResponse:
    """The caller's counterpart, or null while it is not resolvable yet."""
    participant = await service.get_counterpart(ctx, conversation_id)
    return ParticipantResponse(participant=participant)


@router.get("/{conversation_id}/messages", response_model=list[MessageWithSender])
async def list_messages(
    conversation_id: UUID,
    ctx: SessionContext = Depends(get_current_context),
    service: MessageService = Depends(get_message_service),
) -> list[MessageWithSender]:
    """History, oldest first, with translations for the caller's language."""
    return await service.list_messages(ctx, conversation_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageWithSender,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    body: MessageSendRequest,
    ctx: SessionContext = Depends(get_current_context),
    service: MessageService = Depends(get_message_service),
) -> MessageWithSender:
    return await service.send_message(ctx, conversation_id, body.text)
