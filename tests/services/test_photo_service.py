"""Tests for profile photo uploads."""
from unittest.mock import patch

from clients.blob_store import BlobStoreError, UploadProgress
from db.profile_store import InMemoryProfileStore
from fakes import FakeBlobStore
from schemas.profile import Profile
from services import photo_service


async def test__upload__stores_blob_and_updates_profile(blob_store: FakeBlobStore) -> None:
    store = InMemoryProfileStore()
    await store.set("u1", Profile(id="u1").to_document())
    progress: list[UploadProgress] = []

    with patch("services.photo_service.now_millis", return_value=1234):
        url = await photo_service.upload_profile_photo(
            blob_store, store, "u1", b"jpeg-bytes", on_progress=progress.append,
        )

    assert url == "https://files.example.com/profile_images/profile_u1_1234"
    assert blob_store.uploads["profile_images/profile_u1_1234"] == b"jpeg-bytes"
    assert (await store.get("u1"))["photoURL"] == url
    assert progress[-1].percent == 100.0


async def test__upload_failure__returns_none_and_keeps_profile(blob_store: FakeBlobStore) -> None:
    store = InMemoryProfileStore()
    await store.set("u1", Profile(id="u1", photo_url="old").to_document())
    blob_store.error = BlobStoreError("quota exceeded")

    assert await photo_service.upload_profile_photo(blob_store, store, "u1", b"x") is None
    assert (await store.get("u1"))["photoURL"] == "old"


async def test__empty_data__not_uploaded(blob_store: FakeBlobStore) -> None:
    assert await photo_service.upload_profile_photo(
        blob_store, InMemoryProfileStore(), "u1", b"",
    ) is None
    assert blob_store.uploads == {}


def test__profile_photo_path() -> None:
    assert photo_service.profile_photo_path("u1", 99) == "profile_images/profile_u1_99"
