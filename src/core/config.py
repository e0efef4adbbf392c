"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemas.profile import RECENT_WORDS_LIMIT


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Identity provider (Firebase Auth REST API)
    identity_api_key: str = Field(default="", validation_alias="FIREBASE_API_KEY")
    identity_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        validation_alias="FIREBASE_IDENTITY_URL",
    )

    # Blob storage for profile photos
    storage_bucket: str = Field(default="", validation_alias="FIREBASE_STORAGE_BUCKET")
    storage_base_url: str = Field(
        default="https://firebasestorage.googleapis.com/v0",
        validation_alias="FIREBASE_STORAGE_URL",
    )

    # Search index (Algolia) - empty credentials mean "not provisioned"
    search_app_id: str = Field(default="", validation_alias="ALGOLIA_APP_ID")
    search_api_key: str = Field(default="", validation_alias="ALGOLIA_SEARCH_KEY")
    search_index_name: str = Field(
        default="brainrot_dictionary", validation_alias="ALGOLIA_INDEX_NAME",
    )

    # Profile store
    profile_store_backend: Literal["redis", "memory"] = Field(
        default="redis", validation_alias="PROFILE_STORE_BACKEND",
    )
    profile_key_prefix: str = Field(default="users", validation_alias="PROFILE_KEY_PREFIX")
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # Shared HTTP client timeout (httpx default)
    http_timeout: float = Field(default=5.0, validation_alias="HTTP_TIMEOUT")

    # Degraded-mode retry budget: attempt n waits n * backoff seconds
    profile_retry_attempts: int = Field(default=3, validation_alias="PROFILE_RETRY_ATTEMPTS")
    profile_retry_backoff_seconds: float = Field(
        default=3.0, validation_alias="PROFILE_RETRY_BACKOFF_SECONDS",
    )

    recent_words_limit: int = Field(
        default=RECENT_WORDS_LIMIT, validation_alias="RECENT_WORDS_LIMIT",
    )
    trending_limit: int = Field(default=10, validation_alias="TRENDING_LIMIT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject retry and list limits that would break reconciliation or bookkeeping."""
        if self.profile_retry_attempts < 0:
            raise ValueError("PROFILE_RETRY_ATTEMPTS must be >= 0")
        if self.profile_retry_backoff_seconds <= 0:
            raise ValueError("PROFILE_RETRY_BACKOFF_SECONDS must be > 0")
        if not 1 <= self.recent_words_limit <= RECENT_WORDS_LIMIT:
            raise ValueError(f"RECENT_WORDS_LIMIT must be between 1 and {RECENT_WORDS_LIMIT}")
        if self.trending_limit < 0:
            raise ValueError("TRENDING_LIMIT must be >= 0")
        return self

    @property
    def search_configured(self) -> bool:
        """Whether search index credentials are present."""
        return bool(self.search_app_id and self.search_api_key)

    @property
    def identity_configured(self) -> bool:
        """Whether the identity provider API key is present."""
        return bool(self.identity_api_key)

    @property
    def search_base_url(self) -> str:
        """Get the Algolia DSN host for the configured application."""
        return f"https://{self.search_app_id}-dsn.algolia.net"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
