"""
Redis client with connection pooling for the persistence layer.

Everything on the inference path is async, so only the asyncio client is
pooled. Values are stored as decoded strings (JSON).
"""

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from inference_gateway.config import Settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Process-wide async connection pool, created on first use."""

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get asynchronous Redis client backed by the shared pool.

        Args:
            settings: Application settings (REDIS_URL, REDIS_MAX_CONNECTIONS)

        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis async connection pool", url=settings.REDIS_URL)

        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def close_async_pool(cls) -> None:
        """Disconnect the pool (cleanup on shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")
