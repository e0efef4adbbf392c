"""Service layer for profile creation and field-level profile updates."""
import logging
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from db.profile_store import (
    ArrayUnion,
    ProfileStore,
    ProfileStoreError,
    ServerTimestamp,
)
from schemas.identity import Identity
from schemas.profile import Badge, Profile, ProfileSettings
from schemas.validators import utc_now

logger = logging.getLogger(__name__)

GUEST_DISPLAY_NAME = "Guest User"

# Profile fields the user may edit directly, mapped to document keys
EDITABLE_PROFILE_FIELDS = {
    "display_name": "displayName",
    "photo_url": "photoURL",
    "bio": "bio",
    "username": "username",
}

# Stats fields that may be set through update_stats, mapped to document keys
SETTABLE_STATS_FIELDS = {
    "words_viewed": "wordsViewed",
    "words_favorited": "wordsFavorited",
    "quizzes_taken": "quizzesTaken",
    "quizzes_passed": "quizzesPassed",
    "total_score": "totalScore",
    "streak_days": "streakDays",
}


def build_profile(identity: Identity, display_name: str | None = None) -> Profile:
    """
    Build a fresh profile for an identity.

    Anonymous identities get the guest defaults. Without an email the username
    stays empty.
    """
    if identity.is_anonymous:
        return build_guest_profile(identity)
    now = utc_now()
    return Profile(
        id=identity.uid,
        email=identity.email or "",
        display_name=display_name or identity.display_name or "",
        photo_url=identity.photo_url or "",
        username=identity.email_local_part,
        created_at=now,
        last_login_at=now,
    )


def build_guest_profile(identity: Identity) -> Profile:
    """Build the profile used for anonymous (guest) identities."""
    now = utc_now()
    return Profile(
        id=identity.uid,
        email="",
        display_name=GUEST_DISPLAY_NAME,
        username=f"guest_{identity.uid[:6]}",
        created_at=now,
        last_login_at=now,
        settings=ProfileSettings(email_notifications=False),
    )


async def create_profile(store: ProfileStore, profile: Profile) -> Profile:
    """Write a new profile document (full overwrite)."""
    await store.set(profile.id, profile.to_document())
    logger.info("profile_created profile_id=%s", profile.id)
    return profile


async def ensure_profile(store: ProfileStore, identity: Identity) -> Profile:
    """
    Get the profile for an identity, creating it on first sight.

    Concurrent creators are not coordinated: if two callers both see a missing
    document, both write it and the store's last write wins. An email change at
    the identity provider is copied onto an existing profile.

    Raises:
        ProfileStoreUnavailableError: If the store is transiently unreachable.
        ProfileStoreError: For any other store failure, including a document
            that cannot be parsed.
    """
    document = await store.get(identity.uid)
    if document is None:
        logger.info("profile_missing profile_id=%s", identity.uid)
        return await create_profile(store, build_profile(identity))

    try:
        profile = Profile.from_document(identity.uid, document)
    except ValidationError as e:
        raise ProfileStoreError(f"Malformed profile document: {identity.uid}") from e

    if identity.email and profile.email != identity.email:
        await store.update(identity.uid, {"email": identity.email})
        profile = profile.model_copy(update={"email": identity.email})
    return profile


async def get_profile(store: ProfileStore, profile_id: str) -> Profile | None:
    """Get a profile by id, None if missing or unreadable."""
    try:
        document = await store.get(profile_id)
        if document is None:
            return None
        return Profile.from_document(profile_id, document)
    except (ProfileStoreError, ValidationError) as e:
        logger.error("Error getting profile %s: %s", profile_id, e)
        return None


async def _apply(store: ProfileStore, profile_id: str, updates: dict[str, Any], what: str) -> bool:
    """Run a field-level update, logging and returning False on failure."""
    try:
        await store.update(profile_id, updates)
    except ProfileStoreError as e:
        logger.error("Error updating %s for profile %s: %s", what, profile_id, e)
        return False
    return True


async def update_profile_fields(
    store: ProfileStore,
    profile_id: str,
    **fields: str,
) -> bool:
    """
    Update editable profile fields (display_name, photo_url, bio, username).

    Also refreshes lastLoginAt, matching the app's treatment of profile edits as
    activity.

    Raises:
        ValueError: If an unknown field is passed.
    """
    unknown = set(fields) - set(EDITABLE_PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
    updates: dict[str, Any] = {
        EDITABLE_PROFILE_FIELDS[name]: value for name, value in fields.items()
    }
    updates["lastLoginAt"] = ServerTimestamp()
    return await _apply(store, profile_id, updates, "profile")


async def update_settings(
    store: ProfileStore,
    profile_id: str,
    **settings: Any,
) -> bool:
    """
    Update individual settings using dot-notation paths.

    Raises:
        ValueError: If an unknown setting or invalid value is passed.
    """
    unknown = set(settings) - set(ProfileSettings.model_fields)
    if unknown:
        raise ValueError(f"Unknown settings: {sorted(unknown)}")
    # Validate through the schema so bad values never reach the store
    values = ProfileSettings(**settings).model_dump(mode="json")
    updates = {f"settings.{to_camel(name)}": values[name] for name in settings}
    return await _apply(store, profile_id, updates, "settings")


async def update_stats(
    store: ProfileStore,
    profile_id: str,
    **stats: int,
) -> bool:
    """
    Set individual stats counters; stats.lastActive is always refreshed.

    Raises:
        ValueError: If an unknown or negative counter is passed.
    """
    unknown = set(stats) - set(SETTABLE_STATS_FIELDS)
    if unknown:
        raise ValueError(f"Unknown stats: {sorted(unknown)}")
    if any(value < 0 for value in stats.values()):
        raise ValueError("Stats counters cannot be negative")
    updates: dict[str, Any] = {
        f"stats.{SETTABLE_STATS_FIELDS[name]}": value for name, value in stats.items()
    }
    updates["stats.lastActive"] = ServerTimestamp()
    return await _apply(store, profile_id, updates, "stats")


async def add_badge(
    store: ProfileStore,
    profile_id: str,
    badge_id: str,
    name: str,
    description: str = "",
    icon_ref: str = "",
) -> bool:
    """Award a badge, stamped with the current time."""
    badge = Badge(id=badge_id, name=name, description=description, icon_ref=icon_ref)
    updates = {"badges": ArrayUnion(badge.model_dump(by_alias=True, mode="json"))}
    return await _apply(store, profile_id, updates, "badges")


async def touch_last_login(store: ProfileStore, profile_id: str) -> bool:
    """Refresh lastLoginAt and stats.lastActive."""
    updates = {"lastLoginAt": ServerTimestamp(), "stats.lastActive": ServerTimestamp()}
    return await _apply(store, profile_id, updates, "last login")


async def touch_last_active(store: ProfileStore, profile_id: str) -> bool:
    """Refresh stats.lastActive."""
    return await _apply(
        store, profile_id, {"stats.lastActive": ServerTimestamp()}, "last active",
    )


