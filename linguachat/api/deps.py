"""Shared FastAPI dependencies: auth, database sessions, service injection.

The translation adapter, change feed and translation cache are created once
during the FastAPI lifespan and stored on app.state. Request handlers reach
them through Depends(), never by direct import.
"""

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.core.config import settings
from linguachat.core.exceptions import AuthenticationRequiredError
from linguachat.core.security import SessionContext, decode_access_token
from linguachat.db.postgres import get_async_session
from linguachat.services.chat.conversations import ConversationService
from linguachat.services.chat.directory import CounterpartResolver, ParticipantDirectory
from linguachat.services.chat.profiles import ProfileStore
from linguachat.services.chat.sender import MessageService
from linguachat.services.chat.store import MessageStore
from linguachat.services.chat.translation_cache import TranslationCacheManager
from linguachat.services.realtime.feed import ChangeFeed
from linguachat.services.translation.adapter import TranslationAdapter


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

async def get_db(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncSession:
    """Yield an async database session."""
    return session


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationRequiredError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationRequiredError()
    return token.strip()


async def get_current_context(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    """Authenticate the caller and load their language preference."""
    user_id = decode_access_token(_bearer_token(authorization))
    profile = await ProfileStore(db).get(user_id)
    if profile is None:
        return SessionContext(user_id=user_id)
    return SessionContext(
        user_id=user_id,
        preferred_language=profile.preferred_language,
        display_name=profile.display_name,
    )


# ---------------------------------------------------------------------------
# Singletons from app.state (set during lifespan)
# ---------------------------------------------------------------------------

def get_translation_adapter(request: Request) -> TranslationAdapter:
    return request.app.state.translation_adapter


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_translation_cache(request: Request) -> TranslationCacheManager:
    return request.app.state.translation_cache


# ---------------------------------------------------------------------------
# Stores and services, wired via Depends()
# ---------------------------------------------------------------------------

def get_message_store(db: AsyncSession = Depends(get_db)) -> MessageStore:
    return MessageStore(db)


def get_profile_store(db: AsyncSession = Depends(get_db)) -> ProfileStore:
    return ProfileStore(db)


def get_directory(db: AsyncSession = Depends(get_db)) -> ParticipantDirectory:
    return ParticipantDirectory(db)


def get_counterpart_resolver(
    directory: ParticipantDirectory = Depends(get_directory),
    messages: MessageStore = Depends(get_message_store),
    profiles: ProfileStore = Depends(get_profile_store),
) -> CounterpartResolver:
    return CounterpartResolver(
        directory=directory,
        messages=messages,
        profiles=profiles,
        retry_delays=settings.counterpart_retry_delays,
    )


def get_message_service(
    db: AsyncSession = Depends(get_db),
    messages: MessageStore = Depends(get_message_store),
    directory: ParticipantDirectory = Depends(get_directory),
    profiles: ProfileStore = Depends(get_profile_store),
    translator: TranslationAdapter = Depends(get_translation_adapter),
    cache: TranslationCacheManager = Depends(get_translation_cache),
    feed: ChangeFeed = Depends(get_change_feed),
) -> MessageService:
    """Return a MessageService bound to the request session."""
    return MessageService(
        db=db,
        messages=messages,
        directory=directory,
        profiles=profiles,
        translator=translator,
        cache=cache,
        feed=feed,
    )


def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    directory: ParticipantDirectory = Depends(get_directory),
    messages: MessageStore = Depends(get_message_store),
    profiles: ProfileStore = Depends(get_profile_store),
    resolver: CounterpartResolver = Depends(get_counterpart_resolver),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ConversationService:
    """Return a ConversationService bound to the request session."""
    return ConversationService(
        db=db,
        directory=directory,
        messages=messages,
        profiles=profiles,
        resolver=resolver,
        feed=feed,
    )
