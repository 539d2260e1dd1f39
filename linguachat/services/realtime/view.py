"""Client-side view of one conversation.

Delivery is at-least-once, so the view de-duplicates by message id and
orders by (created_at, id) at render time rather than trusting arrival
order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from linguachat.schemas.message import MessageRead, MessageWithSender
from linguachat.schemas.profile import SenderSummary
from linguachat.services.realtime.events import (
    MessageDeleted,
    MessageInserted,
    RealtimeEvent,
)


@dataclass
class ViewEntry:
    message: MessageRead
    sender: SenderSummary


class ClientView:
    def __init__(self, viewer_id: UUID, preferred_language: str | None = None) -> None:
        self.viewer_id = viewer_id
        self.preferred_language = preferred_language
        self._entries: dict[UUID, ViewEntry] = {}
        # Ids deleted while their insert may still be in flight.
        self._removed: set[UUID] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries

    def seed(self, history: Iterable[MessageWithSender]) -> None:
        for item in history:
            if item.id in self._entries or item.id in self._removed:
                continue
            message = MessageRead.model_validate(item.model_dump(exclude={"sender"}))
            self._entries[item.id] = ViewEntry(message=message, sender=item.sender)

    def apply(self, event: RealtimeEvent) -> bool:
        """Apply one event. Returns True if the visible list changed."""
        if isinstance(event, MessageInserted):
            message_id = event.message.id
            if message_id in self._entries or message_id in self._removed:
                return False
            self._entries[message_id] = ViewEntry(message=event.message, sender=event.sender)
            return True
        if isinstance(event, MessageDeleted):
            self._removed.add(event.removed_id)
            return self._entries.pop(event.removed_id, None) is not None
        return False

    def messages(self) -> list[ViewEntry]:
        return sorted(
            self._entries.values(),
            key=lambda e: (e.message.created_at, str(e.message.id)),
        )

    def display_text(self, entry: ViewEntry) -> str:
        message = entry.message
        if message.sender_id == self.viewer_id or not self.preferred_language:
            return message.original_text
        translated = message.translated_texts.get(self.preferred_language)
        if translated and translated != message.original_text:
            return translated
        return message.original_text
