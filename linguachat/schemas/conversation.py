"""Conversation request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from linguachat.schemas.profile import ProfileRead, SenderSummary


class ConversationStartRequest(BaseModel):
    """POST /v1/conversations request body."""

    model_config = ConfigDict(populate_by_name=True)

    contact_id: uuid.UUID = Field(alias="contactId")


class ConversationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ConversationStartResponse(BaseModel):
    conversation: ConversationRead
    counterpart: ProfileRead
    created: bool


class LastMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    original_text: str
    sender_id: uuid.UUID
    created_at: datetime


class ConversationSummary(BaseModel):
    """Sidebar entry: counterpart and last message."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    other_participant: SenderSummary
    last_message: LastMessage | None = None


class ParticipantResponse(BaseModel):
    """GET /v1/conversations/{id}/participants response body."""

    participant: ProfileRead | None = None
