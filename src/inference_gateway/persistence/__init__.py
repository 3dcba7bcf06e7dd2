"""
Storage layer.

- redis_client.py: shared async Redis connection pool
- repository.py: usage and performance stores (in-memory and Redis)
- cache.py: key/value caches and the pydantic-aware JsonCache

Storage Strategy:
- Usage records stored as JSON with TTL (default 90 days)
- Timestamp sorted-set index for date-range queries
- Performance aggregates in one Redis hash keyed by ``backend:model``
"""

from inference_gateway.persistence.cache import InMemoryCache, JsonCache, RedisCache
from inference_gateway.persistence.redis_client import RedisClient
from inference_gateway.persistence.repository import (
    InMemoryMetricsStore,
    InMemoryUsageStore,
    RedisMetricsStore,
    RedisUsageStore,
)

__all__ = [
    "RedisClient",
    "InMemoryCache",
    "RedisCache",
    "JsonCache",
    "InMemoryUsageStore",
    "InMemoryMetricsStore",
    "RedisUsageStore",
    "RedisMetricsStore",
]
