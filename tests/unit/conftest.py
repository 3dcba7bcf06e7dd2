"""Unit test fixtures (mocks and stubs).

Provides mock objects and an in-process backend adapter for testing without
external dependencies.
"""

from typing import AsyncIterator, Optional
from unittest.mock import AsyncMock

import pytest

from inference_gateway.gateway.catalog import ModelCatalog
from inference_gateway.gateway.service import InferenceGateway
from inference_gateway.llm.base_client import BaseBackendAdapter, ModelPricing
from inference_gateway.llm.exceptions import ProviderUnavailableError
from inference_gateway.llm.registry import BackendRegistry
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    ModelDescriptor,
    StreamChunk,
    TokenUsage,
)
from inference_gateway.persistence.repository import InMemoryMetricsStore, InMemoryUsageStore
from inference_gateway.retry.executor import RetryExecutor, RetryPolicy
from inference_gateway.selection.decision_log import BoundedDecisionLog
from inference_gateway.selection.selector import ModelSelector
from inference_gateway.telemetry.audit_logger import AuditLogger
from inference_gateway.telemetry.performance_monitor import PerformanceMonitor
from inference_gateway.telemetry.usage_tracker import UsageTracker


class FakeAdapter(BaseBackendAdapter):
    """Scripted adapter: ``outcomes`` are returned or raised in order by ``call``."""

    name = "fake"
    PRICING = {"model-a": ModelPricing(8192, 0.001, 0.002, default_latency_ms=500)}

    def __init__(
        self,
        name: str = "fake",
        models: tuple = ("model-a",),
        outcomes: Optional[list] = None,
        chunks: Optional[list] = None,
    ):
        super().__init__("http://fake.invalid", name=name)
        self.models = list(models)
        self.outcomes = list(outcomes or [])
        self.chunks = list(chunks or [])
        self.fail_listing = False
        self.calls: list[tuple[InferenceRequest, str]] = []
        self.stream_closed = False
        self.fetches = 0

    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        self.calls.append((request, model))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome or InferenceResponse(
            content=f"echo: {request.prompt}",
            model=model,
            backend=self.name,
            usage=TokenUsage.from_counts(10, 5),
        )

    async def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        self.calls.append((request, model))
        try:
            for chunk in self.chunks:
                if isinstance(chunk, BaseException):
                    raise chunk
                yield chunk
        finally:
            self.stream_closed = True

    async def _fetch_models(self) -> list[str]:
        self.fetches += 1
        if self.fail_listing:
            raise ProviderUnavailableError("listing failed", backend=self.name)
        return list(self.models)


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def make_adapter():
    """Factory fixture: ``make_adapter(name="openai", models=("gpt-4",))``."""
    return FakeAdapter


@pytest.fixture
def instant_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def build_gateway(instant_sleep):
    """Factory fixture wiring an InferenceGateway over in-memory stores.

    Usage:
        def test_something(build_gateway, fake_adapter, create_descriptor):
            gateway = build_gateway([fake_adapter], [create_descriptor("model-a", "fake")])
    """
    def _build(
        adapters: list[BaseBackendAdapter],
        descriptors: list[ModelDescriptor],
        max_attempts: int = 3,
        **kwargs,
    ) -> InferenceGateway:
        registry = BackendRegistry()
        for adapter in adapters:
            registry.register(adapter)
        usage_store = InMemoryUsageStore()
        monitor = PerformanceMonitor(InMemoryMetricsStore(), usage_store=usage_store)
        catalog = ModelCatalog(monitor)
        catalog.publish(descriptors)
        return InferenceGateway(
            registry=registry,
            catalog=catalog,
            selector=ModelSelector(decision_log=BoundedDecisionLog(100)),
            executor=RetryExecutor(
                RetryPolicy(max_attempts=max_attempts, initial_delay=0.01, max_delay=0.05),
                sleep=instant_sleep,
            ),
            usage_tracker=UsageTracker(usage_store),
            performance_monitor=monitor,
            audit_logger=AuditLogger(max_entries=100, content_max_chars=50),
            **kwargs,
        )

    return _build


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.setex = AsyncMock(return_value=True)
    mock.mget = AsyncMock(return_value=[])
    mock.delete = AsyncMock(return_value=1)
    mock.zadd = AsyncMock(return_value=1)
    mock.zrem = AsyncMock(return_value=1)
    mock.zrangebyscore = AsyncMock(return_value=[])
    mock.hget = AsyncMock(return_value=None)
    mock.hset = AsyncMock(return_value=1)
    mock.hgetall = AsyncMock(return_value={})
    mock.hdel = AsyncMock(return_value=1)
    return mock
