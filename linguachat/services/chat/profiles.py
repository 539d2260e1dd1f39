"""Profile and contact data access plus self-service settings."""

from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linguachat.core.exceptions import (
    InvalidConversationError,
    ProfileNotFoundError,
    UnsupportedLanguageError,
)
from linguachat.core.languages import DEFAULT_LANGUAGE, is_supported
from linguachat.models.contact import Contact
from linguachat.models.profile import Profile

logger = structlog.get_logger(__name__)

UNKNOWN_DISPLAY_NAME = "Unknown User"
SEARCH_LIMIT = 20


class ProfileStore:
    """Data access for profiles and the contacts address book."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, user_id: UUID) -> Profile | None:
        result = await self._db.execute(select(Profile).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self._db.execute(select(Profile).where(Profile.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def ensure(self, user_id: UUID) -> tuple[Profile, bool]:
        """Return the caller's profile, creating a default one if missing."""
        existing = await self.get(user_id)
        if existing is not None:
            return existing, False
        profile = Profile(
            id=user_id,
            display_name=UNKNOWN_DISPLAY_NAME,
            preferred_language=DEFAULT_LANGUAGE,
        )
        self._db.add(profile)
        await self._db.flush()
        logger.info("profile_created", user_id=str(user_id))
        return profile, True

    async def update_settings(
        self,
        user_id: UUID,
        display_name: str | None = None,
        preferred_language: str | None = None,
        avatar_url: str | None = None,
    ) -> Profile:
        profile = await self.get(user_id)
        if profile is None:
            raise ProfileNotFoundError()
        if preferred_language is not None:
            if not is_supported(preferred_language):
                raise UnsupportedLanguageError(preferred_language)
            profile.preferred_language = preferred_language
        if display_name is not None:
            profile.display_name = display_name.strip() or profile.display_name
        if avatar_url is not None:
            profile.avatar_url = avatar_url or None
        profile.updated_at = datetime.now(timezone.utc)
        await self._db.flush()
        return profile

    async def search(self, query: str, exclude_user_id: UUID) -> list[Profile]:
        """Case-insensitive display-name search, excluding the caller."""
        pattern = f"%{query.strip()}%"
        result = await self._db.execute(
            select(Profile)
            .where(
                Profile.display_name.ilike(pattern),
                Profile.id != exclude_user_id,
            )
            .order_by(Profile.display_name.asc())
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def contact_ids(self, user_id: UUID) -> set[UUID]:
        result = await self._db.execute(
            select(Contact.contact_user_id).where(Contact.user_id == user_id)
        )
        return set(result.scalars().all())

    async def list_contacts(self, user_id: UUID) -> list[Profile]:
        result = await self._db.execute(
            select(Profile)
            .join(Contact, Contact.contact_user_id == Profile.id)
            .where(Contact.user_id == user_id)
            .order_by(Profile.display_name.asc())
        )
        return list(result.scalars().all())

    async def add_contact(self, user_id: UUID, contact_user_id: UUID) -> bool:
        """Add a directed contact edge. Returns False if it already existed."""
        if user_id == contact_user_id:
            raise InvalidConversationError("You cannot add yourself as a contact")
        if await self.get(contact_user_id) is None:
            raise ProfileNotFoundError()
        if contact_user_id in await self.contact_ids(user_id):
            return False
        self._db.add(Contact(user_id=user_id, contact_user_id=contact_user_id))
        await self._db.flush()
        return True
