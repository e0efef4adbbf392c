"""
Favorites and recently-viewed bookkeeping on profile documents.

Remote operations never raise: failures are logged and reported as False (or an
empty list for reads). The pure `with_*` helpers compute the same change on a
local Profile so the session manager can mirror it before the store confirms.

Favorites policy:
- add_favorite increments stats.wordsFavorited only when the word was not
  already a favorite, so repeated adds do not inflate the counter.
- remove_favorite does not decrement stats.wordsFavorited; the counter tracks
  favorites ever added, not the current set size.
"""
import logging

from pydantic import ValidationError

from db.profile_store import (
    ArrayRemove,
    ArrayUnion,
    Increment,
    ProfileStore,
    ProfileStoreError,
    ServerTimestamp,
)
from schemas.profile import RECENT_WORDS_LIMIT, Profile
from schemas.validators import utc_now

logger = logging.getLogger(__name__)


def push_recent(
    recent_word_ids: list[str],
    word_id: str,
    limit: int = RECENT_WORDS_LIMIT,
) -> list[str]:
    """
    Move `word_id` to the front, dropping any earlier occurrence.

    The result holds at most `limit` entries, and never more than RECENT_WORDS_LIMIT.
    """
    limit = min(limit, RECENT_WORDS_LIMIT)
    remaining = [existing for existing in recent_word_ids if existing != word_id]
    return [word_id, *remaining][:limit]


def with_favorite_added(profile: Profile, word_id: str) -> Profile:
    """Return a copy of the profile with the word favorited."""
    if profile.is_favorite(word_id):
        return profile
    stats = profile.stats.model_copy(
        update={"words_favorited": profile.stats.words_favorited + 1},
    )
    return profile.model_copy(
        update={"favorite_word_ids": [*profile.favorite_word_ids, word_id], "stats": stats},
    )


def with_favorite_removed(profile: Profile, word_id: str) -> Profile:
    """Return a copy of the profile without the word in its favorites."""
    if not profile.is_favorite(word_id):
        return profile
    return profile.model_copy(
        update={
            "favorite_word_ids": [
                existing for existing in profile.favorite_word_ids if existing != word_id
            ],
        },
    )


def with_recent_view(profile: Profile, word_id: str, limit: int = RECENT_WORDS_LIMIT) -> Profile:
    """Return a copy of the profile with the view recorded."""
    stats = profile.stats.model_copy(
        update={"words_viewed": profile.stats.words_viewed + 1, "last_active": utc_now()},
    )
    return profile.model_copy(
        update={
            "recent_word_ids": push_recent(profile.recent_word_ids, word_id, limit),
            "stats": stats,
        },
    )


async def _load(store: ProfileStore, profile_id: str) -> Profile | None:
    """Read a profile, None when it does not exist."""
    document = await store.get(profile_id)
    if document is None:
        return None
    return Profile.from_document(profile_id, document)


async def add_favorite(store: ProfileStore, profile_id: str, word_id: str) -> bool:
    """
    Add a word to the profile's favorites.

    Returns:
        True if the word is a favorite afterwards (including when it already was),
        False if the profile is missing or the store failed.
    """
    try:
        profile = await _load(store, profile_id)
        if profile is None:
            logger.warning("favorite_add_missing_profile profile_id=%s", profile_id)
            return False
        if profile.is_favorite(word_id):
            logger.debug(
                "favorite_add_noop profile_id=%s word_id=%s", profile_id, word_id,
            )
            return True
        await store.update(
            profile_id,
            {
                "favoriteWordIds": ArrayUnion(word_id),
                "stats.wordsFavorited": Increment(1),
            },
        )
    except (ProfileStoreError, ValidationError) as e:
        logger.error(
            "Error adding word %s to favorites for profile %s: %s", word_id, profile_id, e,
        )
        return False
    logger.info("favorite_added profile_id=%s word_id=%s", profile_id, word_id)
    return True


async def remove_favorite(store: ProfileStore, profile_id: str, word_id: str) -> bool:
    """Remove a word from the profile's favorites (idempotent)."""
    try:
        await store.update(profile_id, {"favoriteWordIds": ArrayRemove(word_id)})
    except ProfileStoreError as e:
        logger.error(
            "Error removing word %s from favorites for profile %s: %s", word_id, profile_id, e,
        )
        return False
    logger.info("favorite_removed profile_id=%s word_id=%s", profile_id, word_id)
    return True


async def record_recent_view(
    store: ProfileStore,
    profile_id: str,
    word_id: str,
    limit: int = RECENT_WORDS_LIMIT,
) -> bool:
    """
    Record that a word was viewed.

    Moves the word to the front of recentWordIds (no duplicates, at most `limit`
    entries), increments stats.wordsViewed and refreshes stats.lastActive.
    """
    try:
        profile = await _load(store, profile_id)
        if profile is None:
            logger.warning("recent_view_missing_profile profile_id=%s", profile_id)
            return False
        await store.update(
            profile_id,
            {
                "recentWordIds": push_recent(profile.recent_word_ids, word_id, limit),
                "stats.wordsViewed": Increment(1),
                "stats.lastActive": ServerTimestamp(),
            },
        )
    except (ProfileStoreError, ValidationError) as e:
        logger.error(
            "Error adding word %s to recent words for profile %s: %s", word_id, profile_id, e,
        )
        return False
    return True


async def get_favorite_word_ids(store: ProfileStore, profile_id: str) -> list[str]:
    """Get the profile's favorite word ids, empty on error."""
    try:
        profile = await _load(store, profile_id)
    except (ProfileStoreError, ValidationError) as e:
        logger.error("Error getting favorite words for profile %s: %s", profile_id, e)
        return []
    return profile.favorite_word_ids if profile else []


async def get_recent_word_ids(store: ProfileStore, profile_id: str) -> list[str]:
    """Get the profile's recently viewed word ids, most recent first, empty on error."""
    try:
        profile = await _load(store, profile_id)
    except (ProfileStoreError, ValidationError) as e:
        logger.error("Error getting recent words for profile %s: %s", profile_id, e)
        return []
    return profile.recent_word_ids if profile else []
