"""
Unit tests for Redis client and connection pooling.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from inference_gateway.config import Settings
from inference_gateway.persistence.redis_client import RedisClient


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    settings = MagicMock(spec=Settings)
    settings.REDIS_URL = "redis://localhost:6379/0"
    settings.REDIS_MAX_CONNECTIONS = 50
    return settings


@pytest.fixture(autouse=True)
def reset_pool():
    """Reset the connection pool before each test."""
    RedisClient._async_pool = None
    yield
    RedisClient._async_pool = None


def test_get_async_client_creates_pool_once(mock_settings):
    """The pool is created on first call and shared afterwards."""
    with patch("inference_gateway.persistence.redis_client.AsyncConnectionPool") as mock_pool, \
            patch("inference_gateway.persistence.redis_client.AsyncRedis") as mock_redis:
        pool = MagicMock()
        mock_pool.from_url.return_value = pool

        RedisClient.get_async_client(mock_settings)
        RedisClient.get_async_client(mock_settings)

        mock_pool.from_url.assert_called_once_with(
            mock_settings.REDIS_URL,
            max_connections=mock_settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        assert mock_redis.call_count == 2
        mock_redis.assert_called_with(connection_pool=pool)


@pytest.mark.asyncio
async def test_close_async_pool():
    """Closing disconnects the pool and forgets it."""
    mock_pool = MagicMock()
    mock_pool.disconnect = AsyncMock(return_value=None)
    RedisClient._async_pool = mock_pool

    await RedisClient.close_async_pool()

    mock_pool.disconnect.assert_awaited_once()
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_close_without_pool_is_noop():
    await RedisClient.close_async_pool()

    assert RedisClient._async_pool is None
