"""Shared pytest fixtures for the LinguaChat test suite.

Provides:
  - MockLLMProvider: LLMProvider returning scripted responses
  - FakeTranslationProvider: dictionary-driven TranslationProvider
  - InMemoryDB + in-memory MessageStore / ProfileStore / ParticipantDirectory
  - InMemoryChangeFeed: ChangeFeed with per-conversation listener queues
  - test_db: mock AsyncSession (commit/rollback are AsyncMocks)
  - alice (en) and bob (es) sharing one conversation

The ORM models use PostgreSQL-specific column types (JSONB, UUID), so the
stores are replaced by in-memory fakes with the same method names rather
than run against SQLite. ORM instances are still used as the row objects.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from linguachat.core.exceptions import TranslationProviderError
from linguachat.core.languages import DEFAULT_LANGUAGE
from linguachat.core.security import SessionContext
from linguachat.models.conversation import (
    Conversation,
    ConversationParticipant,
    make_pair_key,
)
from linguachat.models.contact import Contact
from linguachat.models.message import Message
from linguachat.models.profile import Profile
from linguachat.services.chat.conversations import ConversationService
from linguachat.services.chat.directory import CounterpartResolver
from linguachat.services.chat.profiles import SEARCH_LIMIT, ProfileStore
from linguachat.services.chat.sender import MessageService
from linguachat.services.chat.translation_cache import TranslationCacheManager
from linguachat.services.llm.base import LLMProvider, LLMResponse
from linguachat.services.realtime.feed import ChangeEvent, ChangeFeed, FeedListener
from linguachat.services.translation.adapter import TranslationAdapter
from linguachat.services.translation.base import TranslationProvider

ALICE_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
BOB_ID = uuid.UUID("00000000-0000-0000-0000-00000000000b")
CAROL_ID = uuid.UUID("00000000-0000-0000-0000-00000000000c")
CONVERSATION_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


# ---------------------------------------------------------------------------
# Mock LLM Provider
# ---------------------------------------------------------------------------


class MockLLMProvider(LLMProvider):
    """Mock LLM provider. Returns scripted responses in order, then the last one."""

    def __init__(self, *responses: str, error: Exception | None = None) -> None:
        self._responses = list(responses) or ["Mock response"]
        self._error = error
        self.generate_calls: list[dict[str, Any]] = []

    async def generate(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> LLMResponse:
        self.generate_calls.append(
            {
                "prompt": prompt,
                "system_prompt": system_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self._error is not None:
            raise self._error
        text = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        return LLMResponse(text=text, model="mock")


# ---------------------------------------------------------------------------
# Fake Translation Provider
# ---------------------------------------------------------------------------


class FakeTranslationProvider(TranslationProvider):
    """Looks translations up in a dict keyed by (text, target)."""

    def __init__(
        self,
        translations: dict[tuple[str, str], str] | None = None,
        detections: dict[str, str] | None = None,
    ) -> None:
        self.translations = dict(translations or {})
        self.detections = dict(detections or {})
        self.failing = False
        self.translate_calls: list[tuple[str, str, str | None]] = []
        self.detect_calls: list[str] = []

    async def detect(self, text: str) -> str:
        self.detect_calls.append(text)
        if self.failing:
            raise TranslationProviderError("provider down")
        return self.detections.get(text, DEFAULT_LANGUAGE)

    async def translate(self, text: str, target: str, source: str | None = None) -> str:
        self.translate_calls.append((text, target, source))
        if self.failing:
            raise TranslationProviderError("provider down")
        return self.translations.get((text, target), f"[{target}] {text}")


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------


class InMemoryDB:
    """Row storage shared by the in-memory stores, with a ticking clock."""

    def __init__(self) -> None:
        self.profiles: dict[uuid.UUID, Profile] = {}
        self.conversations: dict[uuid.UUID, Conversation] = {}
        self.participants: list[ConversationParticipant] = []
        self.messages: dict[uuid.UUID, Message] = {}
        self.contacts: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self._now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def tick(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    def add_profile(self, user_id: uuid.UUID, name: str, language: str | None) -> Profile:
        profile = Profile(
            id=user_id,
            display_name=name,
            preferred_language=language or DEFAULT_LANGUAGE,
            avatar_url=None,
            created_at=self.tick(),
            updated_at=self._now,
        )
        self.profiles[user_id] = profile
        return profile

    def add_conversation(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        conversation_id: uuid.UUID | None = None,
        with_participants: bool = True,
    ) -> Conversation:
        conversation = Conversation(
            id=conversation_id or uuid.uuid4(),
            created_by=user_a,
            pair_key=make_pair_key(user_a, user_b),
            created_at=self.tick(),
            updated_at=self._now,
        )
        self.conversations[conversation.id] = conversation
        if with_participants:
            for user_id in (user_a, user_b):
                self.participants.append(
                    ConversationParticipant(
                        id=uuid.uuid4(),
                        conversation_id=conversation.id,
                        user_id=user_id,
                        joined_at=self._now,
                    )
                )
        return conversation


class InMemoryMessageStore:
    def __init__(self, db: InMemoryDB) -> None:
        self._db = db
        self.merge_calls: list[tuple[uuid.UUID, str, str]] = []

    async def insert(
        self,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        original_text: str,
        original_language: str,
    ) -> Message:
        message = Message(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            original_text=original_text,
            original_language=original_language,
            translated_texts={},
            created_at=self._db.tick(),
        )
        self._db.messages[message.id] = message
        return message

    async def get(self, message_id: uuid.UUID) -> Message | None:
        return self._db.messages.get(message_id)

    async def list_for_conversation(self, conversation_id: uuid.UUID) -> list[Message]:
        rows = [m for m in self._db.messages.values() if m.conversation_id == conversation_id]
        return sorted(rows, key=lambda m: (m.created_at, str(m.id)))

    async def latest_for_conversation(self, conversation_id: uuid.UUID) -> Message | None:
        rows = await self.list_for_conversation(conversation_id)
        return rows[-1] if rows else None

    async def find_sender_other_than(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> uuid.UUID | None:
        for row in await self.list_for_conversation(conversation_id):
            if row.sender_id != user_id:
                return row.sender_id
        return None

    async def delete_owned(self, message_id: uuid.UUID, sender_id: uuid.UUID) -> bool:
        row = self._db.messages.get(message_id)
        if row is None or row.sender_id != sender_id:
            return False
        del self._db.messages[message_id]
        return True

    async def delete_for_conversation(self, conversation_id: uuid.UUID) -> list[uuid.UUID]:
        removed = [m.id for m in await self.list_for_conversation(conversation_id)]
        for message_id in removed:
            del self._db.messages[message_id]
        return removed

    async def merge_translation(self, message_id: uuid.UUID, language: str, text: str) -> bool:
        self.merge_calls.append((message_id, language, text))
        row = self._db.messages.get(message_id)
        if row is None:
            return False
        row.translated_texts = {**row.translated_texts, language: text}
        return True


class _ProfileWrites:
    """Stands in for the session in ProfileStore's write paths."""

    def __init__(self, db: InMemoryDB) -> None:
        self._db = db

    def add(self, row: Any) -> None:
        if isinstance(row, Profile):
            row.created_at = row.updated_at = self._db.tick()
            self._db.profiles[row.id] = row
        elif isinstance(row, Contact):
            self._db.contacts.add((row.user_id, row.contact_user_id))

    async def flush(self) -> None:
        return None


class InMemoryProfileStore(ProfileStore):
    """ProfileStore with the queries answered from InMemoryDB.

    ensure, update_settings and add_contact are inherited, so their
    validation is the production code.
    """

    def __init__(self, db: InMemoryDB) -> None:
        super().__init__(_ProfileWrites(db))
        self._rows = db
        self.failing = False

    async def get(self, user_id: uuid.UUID) -> Profile | None:
        if self.failing:
            raise RuntimeError("profiles unavailable")
        return self._rows.profiles.get(user_id)

    async def get_many(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Profile]:
        return {uid: self._rows.profiles[uid] for uid in set(user_ids) if uid in self._rows.profiles}

    async def search(self, query: str, exclude_user_id: uuid.UUID) -> list[Profile]:
        needle = query.strip().lower()
        matches = [
            p
            for p in self._rows.profiles.values()
            if needle in p.display_name.lower() and p.id != exclude_user_id
        ]
        return sorted(matches, key=lambda p: p.display_name)[:SEARCH_LIMIT]

    async def contact_ids(self, user_id: uuid.UUID) -> set[uuid.UUID]:
        return {contact for owner, contact in self._rows.contacts if owner == user_id}

    async def list_contacts(self, user_id: uuid.UUID) -> list[Profile]:
        ids = await self.contact_ids(user_id)
        return sorted(
            (self._rows.profiles[i] for i in ids if i in self._rows.profiles),
            key=lambda p: p.display_name,
        )


class InMemoryDirectory:
    def __init__(self, db: InMemoryDB) -> None:
        self._db = db
        self.failing = False

    async def get_conversation(self, conversation_id: uuid.UUID) -> Conversation | None:
        return self._db.conversations.get(conversation_id)

    async def participant_ids(self, conversation_id: uuid.UUID) -> list[uuid.UUID]:
        if self.failing:
            raise RuntimeError("directory unavailable")
        return [p.user_id for p in self._db.participants if p.conversation_id == conversation_id]

    async def is_participant(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return user_id in await self.participant_ids(conversation_id)

    async def find_shared_conversation(
        self, user_a: uuid.UUID, user_b: uuid.UUID
    ) -> Conversation | None:
        key = make_pair_key(user_a, user_b)
        for conversation in self._db.conversations.values():
            if conversation.pair_key == key:
                return conversation
        return None

    async def conversations_for_user(self, user_id: uuid.UUID) -> list[Conversation]:
        ids = {p.conversation_id for p in self._db.participants if p.user_id == user_id}
        return [self._db.conversations[cid] for cid in ids if cid in self._db.conversations]

    async def create_conversation(
        self, created_by: uuid.UUID, other_user_id: uuid.UUID
    ) -> Conversation:
        return self._db.add_conversation(created_by, other_user_id)

    async def touch(self, conversation_id: uuid.UUID) -> None:
        conversation = self._db.conversations.get(conversation_id)
        if conversation is not None:
            conversation.updated_at = self._db.tick()

    async def delete_participants(self, conversation_id: uuid.UUID) -> None:
        self._db.participants = [
            p for p in self._db.participants if p.conversation_id != conversation_id
        ]

    async def delete_conversation(self, conversation_id: uuid.UUID) -> None:
        self._db.conversations.pop(conversation_id, None)


# ---------------------------------------------------------------------------
# In-memory change feed
# ---------------------------------------------------------------------------


class InMemoryListener(FeedListener):
    def __init__(self, feed: InMemoryChangeFeed, conversation_id: uuid.UUID) -> None:
        self._feed = feed
        self.conversation_id = conversation_id
        self.queue: asyncio.Queue[ChangeEvent | Exception | None] = asyncio.Queue()
        self.closed = False

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def break_feed(self, error: Exception | None = None) -> None:
        self.queue.put_nowait(error or ConnectionError("feed lost"))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)
            self._feed.listeners.remove(self)


class InMemoryChangeFeed(ChangeFeed):
    def __init__(self) -> None:
        self.published: list[ChangeEvent] = []
        self.listeners: list[InMemoryListener] = []
        self.fail_publish = False
        self.subscribe_failures = 0
        self.subscribe_hang = False
        self.subscribe_calls = 0

    async def publish(self, event: ChangeEvent) -> None:
        if self.fail_publish:
            raise ConnectionError("feed unavailable")
        self.published.append(event)
        for listener in list(self.listeners):
            if listener.conversation_id == event.conversation_id:
                listener.queue.put_nowait(event)

    async def subscribe(self, conversation_id: uuid.UUID) -> FeedListener:
        self.subscribe_calls += 1
        if self.subscribe_hang:
            await asyncio.Event().wait()
        if self.subscribe_failures > 0:
            self.subscribe_failures -= 1
            raise ConnectionError("subscribe refused")
        listener = InMemoryListener(self, conversation_id)
        self.listeners.append(listener)
        return listener


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_db() -> MagicMock:
    """Mock AsyncSession: services only commit and roll back through it."""
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def memory_db() -> InMemoryDB:
    db = InMemoryDB()
    db.add_profile(ALICE_ID, "Alice", "en")
    db.add_profile(BOB_ID, "Bob", "es")
    db.add_profile(CAROL_ID, "Carol", "fr")
    db.add_conversation(ALICE_ID, BOB_ID, conversation_id=CONVERSATION_ID)
    return db


@pytest.fixture
def message_store(memory_db: InMemoryDB) -> InMemoryMessageStore:
    return InMemoryMessageStore(memory_db)


@pytest.fixture
def profile_store(memory_db: InMemoryDB) -> InMemoryProfileStore:
    return InMemoryProfileStore(memory_db)


@pytest.fixture
def directory(memory_db: InMemoryDB) -> InMemoryDirectory:
    return InMemoryDirectory(memory_db)


@pytest.fixture
def fake_provider() -> FakeTranslationProvider:
    return FakeTranslationProvider(
        translations={("Hello", "es"): "Hola", ("Hola", "en"): "Hello"},
        detections={"Hello": "en", "Hola": "es"},
    )


@pytest.fixture
def translator(fake_provider: FakeTranslationProvider) -> TranslationAdapter:
    return TranslationAdapter(fake_provider)


@pytest.fixture
def cache(
    translator: TranslationAdapter, message_store: InMemoryMessageStore
) -> TranslationCacheManager:
    return TranslationCacheManager(translator, persist=message_store.merge_translation)


@pytest.fixture
def change_feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def alice() -> SessionContext:
    return SessionContext(user_id=ALICE_ID, preferred_language="en", display_name="Alice")


@pytest.fixture
def bob() -> SessionContext:
    return SessionContext(user_id=BOB_ID, preferred_language="es", display_name="Bob")


@pytest.fixture
def carol() -> SessionContext:
    return SessionContext(user_id=CAROL_ID, preferred_language="fr", display_name="Carol")


@pytest.fixture
def message_service(
    test_db: MagicMock,
    message_store: InMemoryMessageStore,
    directory: InMemoryDirectory,
    profile_store: InMemoryProfileStore,
    translator: TranslationAdapter,
    cache: TranslationCacheManager,
    change_feed: InMemoryChangeFeed,
) -> MessageService:
    return MessageService(
        db=test_db,
        messages=message_store,
        directory=directory,
        profiles=profile_store,
        translator=translator,
        cache=cache,
        feed=change_feed,
    )


@pytest.fixture
def resolver(
    directory: InMemoryDirectory,
    message_store: InMemoryMessageStore,
    profile_store: InMemoryProfileStore,
) -> CounterpartResolver:
    return CounterpartResolver(
        directory=directory,
        messages=message_store,
        profiles=profile_store,
        retry_delays=(2.0, 5.0),
        sleep=AsyncMock(),
    )


@pytest.fixture
def conversation_service(
    test_db: MagicMock,
    directory: InMemoryDirectory,
    message_store: InMemoryMessageStore,
    profile_store: InMemoryProfileStore,
    resolver: CounterpartResolver,
    change_feed: InMemoryChangeFeed,
) -> ConversationService:
    return ConversationService(
        db=test_db,
        directory=directory,
        messages=message_store,
        profiles=profile_store,
        resolver=resolver,
        feed=change_feed,
    )
