"""Typed events delivered to a client session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from linguachat.schemas.message import MessageRead
from linguachat.schemas.profile import SenderSummary


class SubscriptionState(str, enum.Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    ERROR = "error"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class MessageInserted:
    conversation_id: UUID
    message: MessageRead
    sender: SenderSummary
    translated_texts: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "message_inserted",
            "conversation_id": str(self.conversation_id),
            "message": self.message.model_dump(mode="json"),
            "sender": self.sender.model_dump(mode="json"),
            "translated_texts": dict(self.translated_texts),
        }


@dataclass(frozen=True)
class MessageDeleted:
    conversation_id: UUID
    removed_id: UUID

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "message_deleted",
            "conversation_id": str(self.conversation_id),
            "removed_id": str(self.removed_id),
        }


@dataclass(frozen=True)
class SubscriptionStateChanged:
    conversation_id: UUID
    state: SubscriptionState

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "subscription_state",
            "conversation_id": str(self.conversation_id),
            "state": self.state.value,
        }


RealtimeEvent = MessageInserted | MessageDeleted | SubscriptionStateChanged
