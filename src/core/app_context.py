"""Process-wide wiring of collaborators and the session manager."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from clients.blob_store import FirebaseStorageBlobStore
from clients.identity_provider import FirebaseIdentityProvider
from clients.search_index import AlgoliaSearchIndex
from core.config import Settings, get_settings
from core.redis import RedisClient
from db.profile_store import InMemoryProfileStore, ProfileStore
from db.redis_profile_store import RedisProfileStore
from services.search_service import WordSearchService
from services.session_manager import SessionManager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for an entry point."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@dataclass
class AppContext:
    """Collaborators shared by every consumer of the session."""

    settings: Settings
    http_client: httpx.AsyncClient
    redis_client: RedisClient
    profile_store: ProfileStore
    identity_provider: FirebaseIdentityProvider
    blob_store: FirebaseStorageBlobStore
    search: WordSearchService
    session: SessionManager


def build_profile_store(settings: Settings, redis_client: RedisClient) -> ProfileStore:
    """Pick the profile store backend from configuration."""
    if settings.profile_store_backend == "memory":
        logger.info("Using in-memory profile store")
        return InMemoryProfileStore()
    return RedisProfileStore(redis_client, key_prefix=settings.profile_key_prefix)


@asynccontextmanager
async def app_lifespan(settings: Settings | None = None) -> AsyncGenerator[AppContext]:
    """
    Build and start every collaborator, then tear them down in reverse order.

    A missing search configuration is not an error; search serves placeholder
    entries instead. An unreachable Redis leaves the store reporting
    "unavailable", which the session manager treats as degraded mode.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    if not settings.identity_configured:
        logger.warning("FIREBASE_API_KEY is not set; identity requests will be rejected")

    http_client = httpx.AsyncClient(timeout=settings.http_timeout)
    redis_client = RedisClient(
        url=settings.redis_url,
        enabled=settings.redis_enabled and settings.profile_store_backend == "redis",
        pool_size=settings.redis_pool_size,
    )
    await redis_client.connect()

    profile_store = build_profile_store(settings, redis_client)
    identity_provider = FirebaseIdentityProvider(
        http_client,
        api_key=settings.identity_api_key,
        base_url=settings.identity_base_url,
    )
    blob_store = FirebaseStorageBlobStore(
        http_client,
        bucket=settings.storage_bucket,
        base_url=settings.storage_base_url,
        id_token=lambda: identity_provider.id_token,
    )

    search_index = None
    if settings.search_configured:
        search_index = AlgoliaSearchIndex(
            http_client,
            app_id=settings.search_app_id,
            api_key=settings.search_api_key,
            index_name=settings.search_index_name,
            base_url=settings.search_base_url,
        )
    else:
        logger.info("Search index not configured, serving placeholder words")
    search = WordSearchService(search_index, default_limit=settings.trending_limit)

    session = SessionManager(
        identity_provider,
        profile_store,
        blob_store=blob_store,
        retry_attempts=settings.profile_retry_attempts,
        retry_backoff_seconds=settings.profile_retry_backoff_seconds,
        recent_words_limit=settings.recent_words_limit,
    )
    await session.start()

    try:
        yield AppContext(
            settings=settings,
            http_client=http_client,
            redis_client=redis_client,
            profile_store=profile_store,
            identity_provider=identity_provider,
            blob_store=blob_store,
            search=search,
            session=session,
        )
    finally:
        await session.close()
        await redis_client.close()
        await http_client.aclose()
