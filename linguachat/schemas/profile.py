"""Profile and contact request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProfileRead(BaseModel):
    """Public view of a profile."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | str
    display_name: str
    preferred_language: str
    avatar_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SenderSummary(BaseModel):
    """Minimal sender info attached to a delivered message."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | str
    display_name: str
    avatar_url: str | None = None


class ProfileUpdate(BaseModel):
    """PATCH /v1/profile request body."""

    display_name: str | None = Field(default=None, min_length=1)
    preferred_language: str | None = None
    avatar_url: str | None = None


class ContactCreate(BaseModel):
    """POST /v1/contacts request body."""

    model_config = ConfigDict(populate_by_name=True)

    contact_user_id: uuid.UUID = Field(alias="contactUserId")


class ContactRead(ProfileRead):
    """A profile as seen from the caller's address book."""

    is_contact: bool = False
