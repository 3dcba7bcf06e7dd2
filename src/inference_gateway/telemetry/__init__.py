"""
Usage, performance and audit recorders plus Prometheus metrics.
"""

from inference_gateway.telemetry.audit_logger import AuditLogger
from inference_gateway.telemetry.performance_monitor import AlertThresholds, PerformanceMonitor
from inference_gateway.telemetry.usage_tracker import UsageTracker

__all__ = ["AuditLogger", "AlertThresholds", "PerformanceMonitor", "UsageTracker"]
