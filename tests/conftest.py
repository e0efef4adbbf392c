"""Pytest fixtures shared by every test module."""
import pytest

from fakes import ControllableProfileStore, FakeBlobStore, FakeIdentityProvider


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    """In-memory identity provider."""
    return FakeIdentityProvider()


@pytest.fixture
def profile_store() -> ControllableProfileStore:
    """In-memory profile store with failure injection."""
    return ControllableProfileStore()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    """In-memory blob store."""
    return FakeBlobStore()
