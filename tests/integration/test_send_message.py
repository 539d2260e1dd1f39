"""Integration tests for the message send, delete and read paths.

Tests:
  - send stores trimmed text with detected language and empty translations
  - send commits, bumps the conversation and publishes an INSERT event
  - empty text and non-participants are rejected before anything is written
  - publish failure does not fail the send
  - only the sender can delete; a rejected delete leaves the message in place
  - history is translated for the caller, never for their own messages
  - history translation runs at most `translation_concurrency` provider calls at once
  - saving a translation for the message's own language is acknowledged without a write
"""

from __future__ import annotations

import asyncio
import uuid
from unittest.mock import MagicMock

import pytest

from linguachat.core.exceptions import (
    EmptyMessageError,
    MessageNotFoundError,
    NotMessageOwnerError,
    NotParticipantError,
    UnsupportedLanguageError,
)
from linguachat.services.chat.sender import MessageService
from linguachat.services.chat.translation_cache import TranslationCacheManager
from tests.conftest import (
    CONVERSATION_ID,
    FakeTranslationProvider,
    InMemoryChangeFeed,
    InMemoryDB,
    InMemoryDirectory,
    InMemoryMessageStore,
    InMemoryProfileStore,
)


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_send_stores_and_publishes(
        self,
        message_service: MessageService,
        alice,
        memory_db: InMemoryDB,
        change_feed: InMemoryChangeFeed,
        test_db: MagicMock,
    ) -> None:
        before = memory_db.conversations[CONVERSATION_ID].updated_at

        sent = await message_service.send_message(alice, CONVERSATION_ID, "  Hello \n")

        assert sent.original_text == "Hello"
        assert sent.original_language == "en"
        assert sent.translated_texts == {}
        assert sent.sender.display_name == "Alice"
        assert memory_db.messages[sent.id].original_text == "Hello"
        assert memory_db.conversations[CONVERSATION_ID].updated_at > before
        test_db.commit.assert_awaited()

        assert len(change_feed.published) == 1
        event = change_feed.published[0]
        assert (event.type, event.conversation_id, event.message_id) == (
            "INSERT",
            CONVERSATION_ID,
            sent.id,
        )

    @pytest.mark.asyncio
    async def test_language_detected_from_text(self, message_service: MessageService, bob) -> None:
        sent = await message_service.send_message(bob, CONVERSATION_ID, "Hola")
        assert sent.original_language == "es"

    @pytest.mark.asyncio
    async def test_detection_outage_defaults_to_english(
        self, message_service: MessageService, fake_provider: FakeTranslationProvider, bob
    ) -> None:
        fake_provider.failing = True
        sent = await message_service.send_message(bob, CONVERSATION_ID, "Hola")
        assert sent.original_language == "en"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_text_rejected(
        self, message_service: MessageService, alice, memory_db: InMemoryDB, text: str
    ) -> None:
        with pytest.raises(EmptyMessageError):
            await message_service.send_message(alice, CONVERSATION_ID, text)
        assert memory_db.messages == {}

    @pytest.mark.asyncio
    async def test_non_participant_rejected(
        self,
        message_service: MessageService,
        carol,
        memory_db: InMemoryDB,
        change_feed: InMemoryChangeFeed,
    ) -> None:
        with pytest.raises(NotParticipantError):
            await message_service.send_message(carol, CONVERSATION_ID, "Bonjour")
        assert memory_db.messages == {}
        assert change_feed.published == []

    @pytest.mark.asyncio
    async def test_publish_failure_is_not_raised(
        self,
        message_service: MessageService,
        alice,
        memory_db: InMemoryDB,
        change_feed: InMemoryChangeFeed,
    ) -> None:
        change_feed.fail_publish = True
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")
        assert sent.id in memory_db.messages


class TestDeleteMessage:
    @pytest.mark.asyncio
    async def test_sender_can_delete(
        self,
        message_service: MessageService,
        alice,
        memory_db: InMemoryDB,
        change_feed: InMemoryChangeFeed,
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")

        await message_service.delete_message(alice, sent.id)

        assert sent.id not in memory_db.messages
        assert change_feed.published[-1].type == "DELETE"
        assert change_feed.published[-1].message_id == sent.id

    @pytest.mark.asyncio
    async def test_other_participant_cannot_delete(
        self, message_service: MessageService, alice, bob, memory_db: InMemoryDB
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")

        with pytest.raises(NotMessageOwnerError) as exc_info:
            await message_service.delete_message(bob, sent.id)

        assert exc_info.value.status_code == 403
        assert sent.id in memory_db.messages

    @pytest.mark.asyncio
    async def test_missing_message(self, message_service: MessageService, alice) -> None:
        with pytest.raises(MessageNotFoundError):
            await message_service.delete_message(alice, uuid.uuid4())


class TestListMessages:
    @pytest.mark.asyncio
    async def test_history_translated_for_viewer(
        self,
        message_service: MessageService,
        alice,
        bob,
        fake_provider: FakeTranslationProvider,
    ) -> None:
        await message_service.send_message(alice, CONVERSATION_ID, "Hello")
        await message_service.send_message(bob, CONVERSATION_ID, "Hola")
        fake_provider.translate_calls.clear()

        history = await message_service.list_messages(bob, CONVERSATION_ID)

        assert [m.original_text for m in history] == ["Hello", "Hola"]
        assert history[0].translated_texts == {"es": "Hola"}
        assert history[1].translated_texts == {}
        # Bob's own message was never sent for translation.
        assert fake_provider.translate_calls == [("Hello", "es", "en")]

    @pytest.mark.asyncio
    async def test_non_participant_cannot_read(self, message_service: MessageService, carol) -> None:
        with pytest.raises(NotParticipantError):
            await message_service.list_messages(carol, CONVERSATION_ID)

    @pytest.mark.asyncio
    async def test_history_translation_concurrency_is_bounded(
        self,
        test_db: MagicMock,
        message_store: InMemoryMessageStore,
        directory: InMemoryDirectory,
        profile_store: InMemoryProfileStore,
        translator,
        cache: TranslationCacheManager,
        change_feed: InMemoryChangeFeed,
        fake_provider: FakeTranslationProvider,
        alice,
        bob,
    ) -> None:
        service = MessageService(
            db=test_db,
            messages=message_store,
            directory=directory,
            profiles=profile_store,
            translator=translator,
            cache=cache,
            feed=change_feed,
            translation_concurrency=2,
        )
        texts = [f"Hola {i}" for i in range(8)]
        for text in texts:
            fake_provider.detections[text] = "es"
            await service.send_message(bob, CONVERSATION_ID, text)

        in_flight = peak = 0
        translate = fake_provider.translate

        async def tracking_translate(text, target, source=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.01)
                return await translate(text, target, source)
            finally:
                in_flight -= 1

        fake_provider.translate = tracking_translate

        history = await service.list_messages(alice, CONVERSATION_ID)

        assert peak == 2
        assert [m.translated_texts for m in history] == [{"en": f"[en] {t}"} for t in texts]

        await cache.drain()


class TestSaveTranslation:
    @pytest.mark.asyncio
    async def test_merge_is_idempotent(
        self,
        message_service: MessageService,
        alice,
        bob,
        memory_db: InMemoryDB,
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")

        await message_service.save_translation(bob, sent.id, "es", "Hola")
        await message_service.save_translation(bob, sent.id, "es", "Hola")

        assert memory_db.messages[sent.id].translated_texts == {"es": "Hola"}

    @pytest.mark.asyncio
    async def test_own_language_acknowledged_without_write(
        self,
        message_service: MessageService,
        alice,
        message_store: InMemoryMessageStore,
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")

        await message_service.save_translation(alice, sent.id, "en", "Hello!")

        assert message_store.merge_calls == []

    @pytest.mark.asyncio
    async def test_unsupported_language_rejected(
        self, message_service: MessageService, alice
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")
        with pytest.raises(UnsupportedLanguageError):
            await message_service.save_translation(alice, sent.id, "xx", "???")

    @pytest.mark.asyncio
    async def test_non_participant_rejected(
        self, message_service: MessageService, alice, carol
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")
        with pytest.raises(NotParticipantError):
            await message_service.save_translation(carol, sent.id, "fr", "Bonjour")


class TestTranslateMessage:
    @pytest.mark.asyncio
    async def test_on_demand_translation_uses_cache(
        self,
        message_service: MessageService,
        alice,
        bob,
        fake_provider: FakeTranslationProvider,
        cache: TranslationCacheManager,
        memory_db: InMemoryDB,
    ) -> None:
        sent = await message_service.send_message(alice, CONVERSATION_ID, "Hello")

        first = await message_service.translate_message(bob, sent.id, "es")
        await cache.drain()
        second = await message_service.translate_message(bob, sent.id, "es")

        assert first.text == second.text == "Hola"
        assert fake_provider.translate_calls == [("Hello", "es", "en")]
        assert memory_db.messages[sent.id].translated_texts == {"es": "Hola"}
