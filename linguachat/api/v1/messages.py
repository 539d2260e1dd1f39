"""Message endpoints addressed by message id."""

from uuid import UUID

from fastapi import APIRouter, Depends

from linguachat.api.deps import get_current_context, get_message_service
from linguachat.core.security import SessionContext
from linguachat.schemas.message import (
    SuccessResponse,
    TranslationRead,
    TranslationSaveRequest,
)
from linguachat.services.chat.sender import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.delete("/{message_id}", response_model=SuccessResponse)
async def delete_message(
    message_id: UUID,
    ctx: SessionContext = Depends(get_current_context),
    service: MessageService = Depends(get_message_service),
) -> SuccessResponse:
    """Delete one of the caller's own messages."""
    await service.delete_message(ctx, message_id)
    return SuccessResponse()


@router.post("/{message_id}/translate", response_model=SuccessResponse)
async def save_translation(
    message_id: UUID,
    body: TranslationSaveRequest,
    ctx: SessionContext = Depends(get_current_context),
    service: MessageService = Depends(get_message_service),
) -> SuccessResponse:
    """Store a translation computed elsewhere."""
    await service.save_translation(
        ctx,
        message_id,
        target_language=body.target_language,
        translated_text=body.translated_text,
    )
    return SuccessResponse()


@router.post("/{message_id}/translations/{language}", response_model=TranslationRead)
async def translate_message(
    message_id: UUID,
    language: str,
    ctx: SessionContext = Depends(get_current_context),
    service: MessageService = Depends(get_message_service),
) -> TranslationRead:
    """Translate a message into *language*, reusing a cached translation."""
    return await service.translate_message(ctx, message_id, language)
