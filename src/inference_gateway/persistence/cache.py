"""
Key-value cache with TTL.

KeyValueCache is the interface the orchestrator depends on. RedisCache is the
production implementation; InMemoryCache serves tests and single-process
deployments. JsonCache layers pydantic model (de)serialization on top.
"""

import heapq
import time
from typing import Callable, Optional, Protocol, TypeVar

import structlog
from pydantic import BaseModel
from redis.asyncio import Redis as AsyncRedis

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class KeyValueCache(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class RedisCache:
    """KeyValueCache over redis.asyncio; expects ``decode_responses=True``."""

    def __init__(self, redis_client: AsyncRedis):
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds:
            await self.redis.setex(name=key, time=ttl_seconds, value=value)
        else:
            await self.redis.set(key, value)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)


class InMemoryCache:
    """
    Dict-backed cache for single-process deployments.

    Expired entries are dropped on read and swept on every write, so keys
    that are never read again do not accumulate. With ``max_entries`` set,
    the least recently written entries are evicted first.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: Optional[int] = None,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._expiry: list[tuple[float, str]] = []  # min-heap of (expires_at, key)
        self._clock = clock
        self.max_entries = max_entries

    def _sweep(self) -> None:
        now = self._clock()
        while self._expiry and self._expiry[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry)
            entry = self._data.get(key)
            # skip heap items left behind by an overwrite
            if entry is not None and entry[1] == expires_at:
                del self._data[key]

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self._sweep()
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data.pop(key, None)
        self._data[key] = (value, expires_at)
        if expires_at is not None:
            heapq.heappush(self._expiry, (expires_at, key))
        if self.max_entries is not None:
            while len(self._data) > self.max_entries:
                del self._data[next(iter(self._data))]

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class JsonCache:
    """
    Pydantic-aware wrapper.

    Read failures (backend down, corrupt JSON, schema drift) are logged and
    reported as misses; write failures are logged and swallowed. A cache is
    never allowed to fail the operation it accelerates.
    """

    def __init__(self, backend: KeyValueCache):
        self.backend = backend

    async def get_model(self, key: str, model_cls: type[M]) -> Optional[M]:
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return model_cls.model_validate_json(raw)
        except ValueError as e:
            logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            return None

    async def set_model(self, key: str, value: BaseModel, ttl_seconds: Optional[int] = None) -> bool:
        try:
            await self.backend.set(key, value.model_dump_json(), ttl_seconds)
            return True
        except Exception as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return False
