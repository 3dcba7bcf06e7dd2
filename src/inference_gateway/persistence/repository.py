"""
Repository pattern for usage records and performance aggregates.

Storage Strategy (Redis):
- Usage records: String per record, key = "usage:record:{record_id}", JSON, TTL
- Usage index: Sorted set "usage:records:index" (score = timestamp)
- Performance metrics: Hash "metrics:performance", field = "backend:model", JSON

In-memory implementations of the same interfaces back tests and
single-process deployments.
"""

import uuid
from collections import deque
from datetime import datetime
from typing import Optional, Protocol

import structlog
from redis.asyncio import Redis as AsyncRedis

from inference_gateway.models.telemetry import PerformanceMetrics, UsageRecord

logger = structlog.get_logger(__name__)


def _matches(
    record: UsageRecord,
    start: Optional[datetime],
    end: Optional[datetime],
    user_id: Optional[str],
    model_key: Optional[str],
    success: Optional[bool],
) -> bool:
    return (
        (start is None or record.timestamp >= start)
        and (end is None or record.timestamp <= end)
        and (user_id is None or record.user_id == user_id)
        and (model_key is None or record.model_key == model_key or record.model == model_key)
        and (success is None or record.success == success)
    )


class UsageStore(Protocol):
    async def add(self, record: UsageRecord) -> bool:
        ...

    async def query(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        user_id: Optional[str] = None,
        model_key: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> list[UsageRecord]:
        ...


class MetricsStore(Protocol):
    async def get(self, model_key: str) -> Optional[PerformanceMetrics]:
        ...

    async def put(self, metrics: PerformanceMetrics) -> bool:
        ...

    async def all(self) -> list[PerformanceMetrics]:
        ...

    async def delete(self, model_key: str) -> None:
        ...

    async def clear(self) -> None:
        ...


class InMemoryUsageStore:
    """Append-only, optionally bounded."""

    def __init__(self, max_records: Optional[int] = None):
        self.max_records = max_records
        self._records: deque[UsageRecord] = deque(maxlen=max_records)

    async def add(self, record: UsageRecord) -> bool:
        self._records.append(record)
        return True

    async def query(self, start=None, end=None, user_id=None, model_key=None, success=None):
        return [r for r in self._records if _matches(r, start, end, user_id, model_key, success)]

    def __len__(self) -> int:
        return len(self._records)


class InMemoryMetricsStore:
    def __init__(self) -> None:
        self._metrics: dict[str, PerformanceMetrics] = {}

    async def get(self, model_key: str) -> Optional[PerformanceMetrics]:
        metrics = self._metrics.get(model_key)
        return metrics.model_copy() if metrics else None

    async def put(self, metrics: PerformanceMetrics) -> bool:
        self._metrics[metrics.model_key] = metrics.model_copy()
        return True

    async def all(self) -> list[PerformanceMetrics]:
        return [m.model_copy() for m in self._metrics.values()]

    async def delete(self, model_key: str) -> None:
        self._metrics.pop(model_key, None)

    async def clear(self) -> None:
        self._metrics.clear()


class RedisUsageStore:
    """
    Usage records in Redis with TTL-based retention.

    Failures are logged and reported (False / empty list), never raised:
    losing a telemetry row must not fail an inference call.
    """

    RECORD_PREFIX = "usage:record:"
    RECORDS_INDEX = "usage:records:index"

    def __init__(self, redis_client: AsyncRedis, ttl_seconds: int = 90 * 86400):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def add(self, record: UsageRecord) -> bool:
        record_id = uuid.uuid4().hex
        try:
            await self.redis.setex(
                name=f"{self.RECORD_PREFIX}{record_id}",
                time=self.ttl_seconds,
                value=record.model_dump_json(),
            )
            await self.redis.zadd(self.RECORDS_INDEX, {record_id: record.timestamp.timestamp()})
            return True
        except Exception as e:
            logger.error("Failed to save usage record", model=record.model_key, error=str(e))
            return False

    async def query(self, start=None, end=None, user_id=None, model_key=None, success=None):
        try:
            record_ids = await self.redis.zrangebyscore(
                self.RECORDS_INDEX,
                start.timestamp() if start else "-inf",
                end.timestamp() if end else "+inf",
            )
            if not record_ids:
                return []
            raw_records = await self.redis.mget([f"{self.RECORD_PREFIX}{rid}" for rid in record_ids])
        except Exception as e:
            logger.error("Failed to query usage records", error=str(e))
            return []

        records = []
        expired = []
        for record_id, raw in zip(record_ids, raw_records):
            if raw is None:
                expired.append(record_id)
                continue
            record = UsageRecord.model_validate_json(raw)
            if _matches(record, start, end, user_id, model_key, success):
                records.append(record)

        if expired:
            # index entries outlive their TTL'd records
            try:
                await self.redis.zrem(self.RECORDS_INDEX, *expired)
            except Exception as e:
                logger.warning("Failed to prune usage index", error=str(e))
        return records


class RedisMetricsStore:
    METRICS_KEY = "metrics:performance"

    def __init__(self, redis_client: AsyncRedis):
        self.redis = redis_client

    async def get(self, model_key: str) -> Optional[PerformanceMetrics]:
        try:
            raw = await self.redis.hget(self.METRICS_KEY, model_key)
        except Exception as e:
            logger.error("Failed to read performance metrics", model=model_key, error=str(e))
            return None
        return PerformanceMetrics.model_validate_json(raw) if raw else None

    async def put(self, metrics: PerformanceMetrics) -> bool:
        try:
            await self.redis.hset(self.METRICS_KEY, metrics.model_key, metrics.model_dump_json())
            return True
        except Exception as e:
            logger.error("Failed to save performance metrics", model=metrics.model_key, error=str(e))
            return False

    async def all(self) -> list[PerformanceMetrics]:
        try:
            raw = await self.redis.hgetall(self.METRICS_KEY)
        except Exception as e:
            logger.error("Failed to list performance metrics", error=str(e))
            return []
        return [PerformanceMetrics.model_validate_json(v) for v in raw.values()]

    async def delete(self, model_key: str) -> None:
        await self.redis.hdel(self.METRICS_KEY, model_key)

    async def clear(self) -> None:
        await self.redis.delete(self.METRICS_KEY)
