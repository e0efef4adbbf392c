"""Tests for process-wide wiring."""
import pytest

from core.app_context import app_lifespan, build_profile_store
from core.config import Settings
from core.redis import RedisClient
from db.profile_store import InMemoryProfileStore
from db.redis_profile_store import RedisProfileStore
from services.session_manager import SessionState


@pytest.fixture
def memory_settings() -> Settings:
    return Settings(
        _env_file=None,
        PROFILE_STORE_BACKEND="memory",
        REDIS_ENABLED="false",
        ALGOLIA_APP_ID="",
        ALGOLIA_SEARCH_KEY="",
    )


class TestAppLifespan:
    """Tests for app_lifespan."""

    async def test__memory_backend__wires_offline_context(
        self, memory_settings: Settings,
    ) -> None:
        async with app_lifespan(memory_settings) as context:
            assert isinstance(context.profile_store, InMemoryProfileStore)
            assert not context.redis_client.is_connected
            assert context.session.state == SessionState.SIGNED_OUT
            assert context.session.current_user is None
            # No index configured: search serves placeholder words
            words = await context.search.search("rizz")
            assert [word.word for word in words] == ["Rizz"]

        assert context.http_client.is_closed

    async def test__redis_backend__uses_redis_store(self) -> None:
        settings = Settings(_env_file=None, PROFILE_STORE_BACKEND="redis", REDIS_ENABLED="false")
        store = build_profile_store(settings, RedisClient(settings.redis_url, enabled=False))
        assert isinstance(store, RedisProfileStore)
