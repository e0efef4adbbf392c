"""Redis-backed profile store: one JSON document per profile key."""
import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from core.redis import RedisClient
from db.profile_store import (
    FieldUpdates,
    ProfileNotFoundError,
    ProfileStoreError,
    ProfileStoreUnavailableError,
    apply_field_updates,
)
from schemas.validators import now_millis

logger = logging.getLogger(__name__)


class RedisProfileStore:
    """
    Profile store on top of the shared RedisClient.

    Field-path updates are applied inside a WATCH/MULTI transaction: if another
    writer changes the document between the read and the write, redis-py retries
    the read-merge-write, so concurrent updates to disjoint fields are never lost.
    """

    def __init__(self, redis_client: RedisClient, key_prefix: str = "users") -> None:
        self._redis_client = redis_client
        self._key_prefix = key_prefix

    def _key(self, profile_id: str) -> str:
        """Generate the document key for a profile."""
        return f"{self._key_prefix}:{profile_id}"

    def _client(self) -> Redis:
        """Get the live Redis client or raise a transient store error."""
        client = self._redis_client.client
        if client is None:
            raise ProfileStoreUnavailableError("Profile store is not connected")
        return client

    async def get(self, profile_id: str) -> dict[str, Any] | None:
        """Get a document, None if it does not exist."""
        client = self._client()
        try:
            raw = await client.get(self._key(profile_id))
        except RedisError as e:
            raise _translate_error("GET", e) from e
        if raw is None:
            return None
        return _decode(profile_id, raw)

    async def set(self, profile_id: str, document: dict[str, Any]) -> None:
        """Overwrite the whole document."""
        client = self._client()
        try:
            await client.set(self._key(profile_id), json.dumps(document))
        except RedisError as e:
            raise _translate_error("SET", e) from e
        logger.debug("profile_store_set profile_id=%s", profile_id)

    async def update(self, profile_id: str, updates: FieldUpdates) -> None:
        """Merge field-path updates into an existing document."""
        client = self._client()
        key = self._key(profile_id)

        async def merge(pipe: Pipeline) -> None:
            raw = await pipe.get(key)
            if raw is None:
                raise ProfileNotFoundError(profile_id)
            document = apply_field_updates(_decode(profile_id, raw), updates, now_millis())
            pipe.multi()
            pipe.set(key, json.dumps(document))

        try:
            await client.transaction(merge, key)
        except RedisError as e:
            raise _translate_error("UPDATE", e) from e
        logger.debug(
            "profile_store_update profile_id=%s fields=%s", profile_id, sorted(updates),
        )


def _decode(profile_id: str, raw: bytes | str) -> dict[str, Any]:
    """Decode a stored JSON document."""
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise ProfileStoreError(f"Corrupt profile document: {profile_id}") from e
    if not isinstance(document, dict):
        raise ProfileStoreError(f"Corrupt profile document: {profile_id}")
    return document


def _translate_error(operation: str, error: RedisError) -> ProfileStoreError:
    """Map a Redis error to the store's transient/non-transient errors."""
    if isinstance(error, RedisConnectionError | RedisTimeoutError):
        logger.warning("Redis %s unavailable: %s", operation, error)
        return ProfileStoreUnavailableError(f"Profile store unavailable: {error}")
    logger.error("Redis %s failed: %s", operation, error)
    return ProfileStoreError(f"Profile store error: {error}")
