"""
Tests for the Redis client wrapper.

Only the fallback behavior is tested here; the rest wraps redis.asyncio directly.
"""
from unittest.mock import AsyncMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from core.redis import RedisClient


class TestRedisClientFallback:
    """Tests for graceful fallback when Redis is disabled or unreachable."""

    async def test__disabled__never_connects(self) -> None:
        """A disabled client stays disconnected and reports ping False."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert not client.is_connected
        assert client.client is None
        assert await client.ping() is False

    async def test__connect_failure__leaves_client_disconnected(self) -> None:
        """A failed ping on connect does not raise."""
        client = RedisClient("redis://localhost:6379")
        failing_ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        with patch("core.redis.Redis.ping", new=failing_ping):
            await client.connect()

        assert not client.is_connected
        assert client.client is None

    async def test__close__without_connection_is_noop(self) -> None:
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.close()
        assert not client.is_connected
