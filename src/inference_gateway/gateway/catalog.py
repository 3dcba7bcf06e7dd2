"""
Model catalog: an immutable ``backend:model`` -> ModelDescriptor snapshot.

Readers take the current snapshot without waiting; ``refresh`` builds a new
mapping off to the side and swaps it in with one assignment. A failed refresh
leaves the last good snapshot in place.
"""

import asyncio
from types import MappingProxyType
from typing import Mapping, Optional

import structlog

from inference_gateway.llm.registry import BackendRegistry
from inference_gateway.models.llm_models import ModelDescriptor
from inference_gateway.telemetry.performance_monitor import PerformanceMonitor

logger = structlog.get_logger(__name__)


class ModelCatalog:
    def __init__(self, performance_monitor: Optional[PerformanceMonitor] = None):
        self.performance_monitor = performance_monitor
        self._snapshot: Mapping[str, ModelDescriptor] = MappingProxyType({})
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task] = None

    # === Reads ===

    def snapshot(self) -> Mapping[str, ModelDescriptor]:
        """Current read-only snapshot. Never mutated after publication."""
        return self._snapshot

    def models(self) -> list[ModelDescriptor]:
        return list(self._snapshot.values())

    def get(self, key: str) -> Optional[ModelDescriptor]:
        return self._snapshot.get(key)

    def by_backend(self, backend: str) -> list[ModelDescriptor]:
        return [m for m in self._snapshot.values() if m.backend == backend]

    def __len__(self) -> int:
        return len(self._snapshot)

    def publish(self, models: list[ModelDescriptor]) -> None:
        """Replace the snapshot wholesale. Later duplicates of a key win."""
        self._snapshot = MappingProxyType({m.key: m for m in models})

    # === Refresh ===

    async def _overlay_observed(self, descriptor: ModelDescriptor) -> ModelDescriptor:
        if self.performance_monitor is None:
            return descriptor
        metrics = await self.performance_monitor.get_metrics(descriptor.key)
        if metrics is None or metrics.total_calls == 0:
            return descriptor
        return descriptor.model_copy(update={
            "average_latency_ms": metrics.average_latency_ms,
            "min_latency_ms": metrics.min_latency_ms,
            "max_latency_ms": metrics.max_latency_ms,
            "success_rate": metrics.success_rate,
        })

    async def _describe_backend(self, registry: BackendRegistry, backend: str) -> list[ModelDescriptor]:
        adapter = registry.get(backend)
        names = await adapter.list_models()
        descriptors = []
        for name in names:
            info = await adapter.get_model_info(name)
            if not registry.is_available(backend):
                info = info.model_copy(update={"is_available": False})
            descriptors.append(await self._overlay_observed(info))
        return descriptors

    async def refresh(self, registry: BackendRegistry) -> int:
        """
        Rebuild the snapshot from every registered backend.

        A backend whose listing fails keeps its previous entries, marked
        unavailable. Returns the number of models in the new snapshot.
        """
        async with self._refresh_lock:
            previous = self._snapshot
            fresh: list[ModelDescriptor] = []
            for backend in registry.names():
                try:
                    fresh.extend(await self._describe_backend(registry, backend))
                except Exception as e:
                    stale = [
                        m.model_copy(update={"is_available": False})
                        for m in previous.values()
                        if m.backend == backend
                    ]
                    fresh.extend(stale)
                    logger.warning(
                        "Backend catalog refresh failed, keeping stale entries",
                        backend=backend,
                        stale_models=len(stale),
                        error=str(e),
                    )
            self.publish(fresh)

        logger.info(
            "Model catalog refreshed",
            models=len(fresh),
            available=sum(1 for m in fresh if m.is_available),
        )
        return len(fresh)

    async def _refresh_loop(self, registry: BackendRegistry, interval: float) -> None:
        while True:
            try:
                await registry.check_health()
                await self.refresh(registry)
            except Exception as e:
                logger.error("Scheduled catalog refresh failed", error=str(e))
            await asyncio.sleep(interval)

    def start_auto_refresh(self, registry: BackendRegistry, interval: float) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(registry, interval))
        logger.info("Catalog auto-refresh started", interval_seconds=interval)

    async def stop_auto_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Catalog auto-refresh stopped")
