"""Message request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from linguachat.schemas.profile import SenderSummary


class MessageSendRequest(BaseModel):
    """POST /v1/conversations/{id}/messages request body."""

    text: str


class MessageRead(BaseModel):
    """A stored message row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    original_text: str
    original_language: str
    translated_texts: dict[str, str] = {}
    created_at: datetime


class MessageWithSender(MessageRead):
    """A message enriched with its sender's profile summary."""

    sender: SenderSummary


class TranslationSaveRequest(BaseModel):
    """POST /v1/messages/{id}/translate request body."""

    model_config = ConfigDict(populate_by_name=True)

    target_language: str = Field(alias="targetLanguage")
    translated_text: str = Field(alias="translatedText")


class TranslationRead(BaseModel):
    """POST /v1/messages/{id}/translations/{lang} response body."""

    message_id: uuid.UUID
    language: str
    text: str


class SuccessResponse(BaseModel):
    success: bool = True
