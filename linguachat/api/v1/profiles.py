"""Profile, contact and user search endpoints."""

import structlog
from fastapi import APIRouter, Depends, Query

from linguachat.api.deps import get_current_context, get_profile_store
from linguachat.core.exceptions import ProfileNotFoundError
from linguachat.core.security import SessionContext
from linguachat.schemas.profile import ContactCreate, ContactRead, ProfileRead, ProfileUpdate
from linguachat.services.chat.profiles import ProfileStore

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["profiles"])


@router.get("/profile", response_model=ProfileRead)
async def get_profile(
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> ProfileRead:
    profile = await profiles.get(ctx.user_id)
    if profile is None:
        raise ProfileNotFoundError()
    return ProfileRead.model_validate(profile)


@router.patch("/profile", response_model=ProfileRead)
async def update_profile(
    body: ProfileUpdate,
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> ProfileRead:
    """Update display name, preferred language and avatar."""
    profile = await profiles.update_settings(
        ctx.user_id,
        display_name=body.display_name,
        preferred_language=body.preferred_language,
        avatar_url=body.avatar_url,
    )
    logger.info(
        "profile_updated",
        user_id=str(ctx.user_id),
        preferred_language=profile.preferred_language,
    )
    return ProfileRead.model_validate(profile)


@router.post("/profile/ensure", response_model=ProfileRead)
async def ensure_profile(
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> ProfileRead:
    """Create the caller's profile with defaults if it does not exist yet."""
    profile, _ = await profiles.ensure(ctx.user_id)
    return ProfileRead.model_validate(profile)


@router.get("/contacts", response_model=list[ContactRead])
async def list_contacts(
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> list[ContactRead]:
    return [
        ContactRead.model_validate(p).model_copy(update={"is_contact": True})
        for p in await profiles.list_contacts(ctx.user_id)
    ]


@router.post("/contacts", response_model=ContactRead)
async def add_contact(
    body: ContactCreate,
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> ContactRead:
    added = await profiles.add_contact(ctx.user_id, body.contact_user_id)
    logger.info(
        "contact_added" if added else "contact_already_present",
        user_id=str(ctx.user_id),
        contact_user_id=str(body.contact_user_id),
    )
    profile = await profiles.get(body.contact_user_id)
    return ContactRead.model_validate(profile).model_copy(update={"is_contact": True})


@router.get("/users/search", response_model=list[ContactRead])
async def search_users(
    q: str = Query(..., min_length=1),
    ctx: SessionContext = Depends(get_current_context),
    profiles: ProfileStore = Depends(get_profile_store),
) -> list[ContactRead]:
    """Find other users by display name, flagging existing contacts."""
    contact_ids = await profiles.contact_ids(ctx.user_id)
    return [
        ContactRead.model_validate(p).model_copy(update={"is_contact": p.id in contact_ids})
        for p in await profiles.search(q, exclude_user_id=ctx.user_id)
    ]
