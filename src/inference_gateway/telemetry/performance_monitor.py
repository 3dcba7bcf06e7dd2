"""
Performance monitor: per-model running aggregates and threshold alerts.

Aggregates are updated incrementally with an online mean under a lock, so
concurrent calls (parallel workflow steps included) never lose an update.
Alerts are derived on demand from the aggregates and never stored.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from inference_gateway.config import Settings
from inference_gateway.models.enums import AlertSeverity, AlertType
from inference_gateway.models.telemetry import Alert, PerformanceMetrics
from inference_gateway.models.selection import utcnow
from inference_gateway.persistence.repository import MetricsStore, UsageStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AlertThresholds:
    failure_rate_warning: float = 0.1
    failure_rate_critical: float = 0.2
    latency_warning_ms: float = 30000.0
    latency_critical_ms: float = 60000.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertThresholds":
        return cls(
            failure_rate_warning=settings.ALERT_FAILURE_RATE_WARNING,
            failure_rate_critical=settings.ALERT_FAILURE_RATE_CRITICAL,
            latency_warning_ms=settings.ALERT_LATENCY_WARNING_MS,
            latency_critical_ms=settings.ALERT_LATENCY_CRITICAL_MS,
        )


class PerformanceMonitor:
    def __init__(
        self,
        store: MetricsStore,
        usage_store: Optional[UsageStore] = None,
        thresholds: Optional[AlertThresholds] = None,
    ):
        self.store = store
        self.usage_store = usage_store
        self.thresholds = thresholds or AlertThresholds()
        self._lock = asyncio.Lock()

    async def record_metrics(
        self,
        model: str,
        backend: str,
        latency_ms: float,
        success: bool,
    ) -> PerformanceMetrics:
        """
        Fold one call into the model's aggregates.

        Raises:
            ValueError: empty model/backend or negative latency
        """
        if not model or not backend:
            raise ValueError("model and backend are required")
        if latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")

        key = f"{backend}:{model}"
        async with self._lock:
            current = await self.store.get(key) or PerformanceMetrics(model=model, backend=backend)
            n = current.total_calls
            successes = current.success_count + (1 if success else 0)
            failures = current.failure_count + (0 if success else 1)
            total = n + 1
            updated = PerformanceMetrics(
                model=model,
                backend=backend,
                total_calls=total,
                success_count=successes,
                failure_count=failures,
                average_latency_ms=round((current.average_latency_ms * n + latency_ms) / total, 2),
                min_latency_ms=latency_ms if n == 0 else min(current.min_latency_ms, latency_ms),
                max_latency_ms=max(current.max_latency_ms, latency_ms),
                success_rate=round(successes / total, 4),
                failure_rate=round(failures / total, 4),
                last_updated=utcnow(),
            )
            await self.store.put(updated)

        logger.debug(
            "Performance metrics updated",
            model=key,
            latency_ms=latency_ms,
            success=success,
            total_calls=total,
        )
        return updated

    async def get_metrics(
        self,
        model_key: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[PerformanceMetrics]:
        """
        Running aggregates, or, when a window is given, aggregates recomputed
        from the usage records in that window.
        """
        if start is None and end is None:
            return await self.store.get(model_key)
        if self.usage_store is None:
            raise ValueError("Date-range metrics need a usage store")

        records = await self.usage_store.query(start=start, end=end, model_key=model_key)
        if not records:
            return None
        latencies = [r.latency_ms for r in records]
        successes = sum(1 for r in records if r.success)
        total = len(records)
        return PerformanceMetrics(
            model=records[0].model,
            backend=records[0].backend,
            total_calls=total,
            success_count=successes,
            failure_count=total - successes,
            average_latency_ms=round(sum(latencies) / total, 2),
            min_latency_ms=min(latencies),
            max_latency_ms=max(latencies),
            success_rate=round(successes / total, 4),
            failure_rate=round((total - successes) / total, 4),
        )

    async def get_all_metrics(self) -> list[PerformanceMetrics]:
        return await self.store.all()

    async def get_metrics_by_backend(self, backend: str) -> list[PerformanceMetrics]:
        return [m for m in await self.store.all() if m.backend == backend]

    async def reset_metrics(self, model_key: Optional[str] = None) -> None:
        async with self._lock:
            if model_key is None:
                await self.store.clear()
            else:
                await self.store.delete(model_key)
        logger.info("Performance metrics reset", model=model_key or "all")

    # === Alerts ===

    def _alerts_for(self, metrics: PerformanceMetrics) -> list[Alert]:
        if metrics.total_calls == 0:
            return []
        t = self.thresholds
        alerts: list[Alert] = []

        if metrics.failure_rate > t.failure_rate_warning:
            critical = metrics.failure_rate > t.failure_rate_critical
            threshold = t.failure_rate_critical if critical else t.failure_rate_warning
            alerts.append(Alert(
                model=metrics.model,
                backend=metrics.backend,
                alert_type=AlertType.HIGH_FAILURE_RATE,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                threshold=threshold,
                observed=metrics.failure_rate,
                message=(
                    f"Failure rate {metrics.failure_rate:.2%} for {metrics.model_key} "
                    f"exceeds {threshold:.0%}"
                ),
            ))

        if metrics.average_latency_ms > t.latency_warning_ms:
            critical = metrics.average_latency_ms > t.latency_critical_ms
            threshold = t.latency_critical_ms if critical else t.latency_warning_ms
            alerts.append(Alert(
                model=metrics.model,
                backend=metrics.backend,
                alert_type=AlertType.HIGH_LATENCY,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                threshold=threshold,
                observed=metrics.average_latency_ms,
                message=(
                    f"Average latency {metrics.average_latency_ms:.0f}ms for "
                    f"{metrics.model_key} exceeds {threshold:.0f}ms"
                ),
            ))
        return alerts

    async def check_alerts(self) -> list[Alert]:
        alerts = [a for m in await self.store.all() for a in self._alerts_for(m)]
        for alert in alerts:
            logger.warning(
                "Performance alert",
                model=f"{alert.backend}:{alert.model}",
                alert_type=alert.alert_type.value,
                severity=alert.severity.value,
                observed=alert.observed,
                threshold=alert.threshold,
            )
        return alerts

    async def get_alerts_for_model(self, model_key: str) -> list[Alert]:
        metrics = await self.store.get(model_key)
        return self._alerts_for(metrics) if metrics else []
