"""Service layer for profile photo uploads."""
import logging

from clients.blob_store import BlobStore, BlobStoreError, ProgressCallback
from db.profile_store import ProfileStore
from schemas.validators import now_millis
from services import profile_service

logger = logging.getLogger(__name__)

PROFILE_IMAGES_PREFIX = "profile_images"


def profile_photo_path(profile_id: str, timestamp_ms: int) -> str:
    """Build the blob path for a new profile photo."""
    return f"{PROFILE_IMAGES_PREFIX}/profile_{profile_id}_{timestamp_ms}"


async def upload_profile_photo(
    blob_store: BlobStore,
    store: ProfileStore,
    profile_id: str,
    data: bytes,
    content_type: str = "image/jpeg",
    on_progress: ProgressCallback | None = None,
) -> str | None:
    """
    Upload a new profile photo and point the profile at it.

    Returns:
        The download URL, or None if the upload or the profile update failed.
    """
    if not data:
        logger.warning("profile_photo_empty profile_id=%s", profile_id)
        return None

    path = profile_photo_path(profile_id, now_millis())
    try:
        photo_url = await blob_store.upload(
            data, path, content_type=content_type, on_progress=on_progress,
        )
    except BlobStoreError as e:
        logger.error("Error uploading profile photo for %s: %s", profile_id, e)
        return None

    if not await profile_service.update_profile_fields(store, profile_id, photo_url=photo_url):
        return None
    return photo_url
