"""
Process-wide wiring for the Inference Gateway.

Provides singleton instances of expensive resources (adapters, stores,
recorders) built from Settings, plus startup/shutdown hooks for whatever
process embeds the gateway.
"""

from functools import lru_cache
from pathlib import Path

import structlog

from inference_gateway.config import Settings, settings
from inference_gateway.gateway.catalog import ModelCatalog
from inference_gateway.gateway.service import InferenceGateway
from inference_gateway.llm.prompt_templates import PromptTemplateManager
from inference_gateway.llm.registry import BackendRegistry, build_registry
from inference_gateway.logging_config import configure_logging
from inference_gateway.persistence.cache import InMemoryCache, JsonCache, RedisCache
from inference_gateway.persistence.redis_client import RedisClient
from inference_gateway.persistence.repository import (
    InMemoryMetricsStore,
    InMemoryUsageStore,
    MetricsStore,
    RedisMetricsStore,
    RedisUsageStore,
    UsageStore,
)
from inference_gateway.retry.executor import RetryExecutor, RetryPolicy
from inference_gateway.security.service import SecurityService
from inference_gateway.selection.selector import ModelSelector
from inference_gateway.telemetry.audit_logger import AuditLogger
from inference_gateway.telemetry.performance_monitor import AlertThresholds, PerformanceMonitor
from inference_gateway.telemetry.usage_tracker import UsageTracker
from inference_gateway.workflow.orchestrator import WorkflowOrchestrator

logger = structlog.get_logger(__name__)


def _use_redis(settings: Settings) -> bool:
    return settings.TELEMETRY_STORE.lower() == "redis"


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return settings


@lru_cache()
def get_security_service() -> SecurityService:
    return SecurityService(encryption_keys=get_settings().ENCRYPTION_KEYS)


@lru_cache()
def get_registry() -> BackendRegistry:
    """
    Get singleton backend registry.

    Each adapter keeps one pooled httpx client for the process lifetime.
    """
    return build_registry(get_settings(), security=get_security_service())


@lru_cache()
def get_usage_store() -> UsageStore:
    config = get_settings()
    if _use_redis(config):
        return RedisUsageStore(RedisClient.get_async_client(config), config.USAGE_RECORD_TTL_SECONDS)
    return InMemoryUsageStore(max_records=config.USAGE_MEMORY_MAX_RECORDS)


@lru_cache()
def get_metrics_store() -> MetricsStore:
    config = get_settings()
    if _use_redis(config):
        return RedisMetricsStore(RedisClient.get_async_client(config))
    return InMemoryMetricsStore()


@lru_cache()
def get_cache() -> JsonCache:
    """Workflow step cache; Redis when telemetry goes to Redis, in-process otherwise."""
    config = get_settings()
    if _use_redis(config):
        return JsonCache(RedisCache(RedisClient.get_async_client(config)))
    return JsonCache(InMemoryCache(max_entries=config.WORKFLOW_CACHE_MAX_ENTRIES))


@lru_cache()
def get_performance_monitor() -> PerformanceMonitor:
    return PerformanceMonitor(
        get_metrics_store(),
        usage_store=get_usage_store(),
        thresholds=AlertThresholds.from_settings(get_settings()),
    )


@lru_cache()
def get_usage_tracker() -> UsageTracker:
    return UsageTracker(get_usage_store())


@lru_cache()
def get_audit_logger() -> AuditLogger:
    config = get_settings()
    return AuditLogger(max_entries=config.AUDIT_LOG_SIZE, content_max_chars=config.AUDIT_CONTENT_MAX_CHARS)


@lru_cache()
def get_selector() -> ModelSelector:
    return ModelSelector.from_settings(get_settings())


@lru_cache()
def get_catalog() -> ModelCatalog:
    return ModelCatalog(get_performance_monitor())


@lru_cache()
def get_prompt_templates() -> PromptTemplateManager:
    """
    Get singleton prompt template manager.

    A missing templates directory leaves only in-memory registrations.
    """
    templates_dir = Path(get_settings().PROMPT_TEMPLATES_DIR)
    return PromptTemplateManager(templates_dir if templates_dir.is_dir() else None)


@lru_cache()
def get_gateway() -> InferenceGateway:
    """
    Get singleton gateway.

    With ACCESS_CONTROL_ENABLED every call carrying a caller id must hold a
    grant for the chosen model in the shared SecurityService.
    """
    config = get_settings()
    return InferenceGateway(
        registry=get_registry(),
        catalog=get_catalog(),
        selector=get_selector(),
        executor=RetryExecutor(RetryPolicy.from_settings(config)),
        usage_tracker=get_usage_tracker(),
        performance_monitor=get_performance_monitor(),
        audit_logger=get_audit_logger(),
        templates=get_prompt_templates(),
        security=get_security_service() if config.ACCESS_CONTROL_ENABLED else None,
    )


def get_orchestrator(**collaborators) -> WorkflowOrchestrator:
    """
    Create a workflow orchestrator over the singleton gateway.

    Not cached: collaborators (retriever, compressor, tools) vary per caller.
    """
    return WorkflowOrchestrator.from_settings(
        get_settings(),
        get_gateway(),
        get_cache(),
        performance_monitor=get_performance_monitor(),
        **collaborators,
    )


async def startup(auto_refresh: bool = True) -> InferenceGateway:
    """Configure logging, load the catalog and optionally keep it fresh."""
    config = get_settings()
    configure_logging(config.LOG_LEVEL, config.ENVIRONMENT, config.APP_NAME, config.APP_VERSION)
    gateway = get_gateway()
    models = await gateway.reload_models()
    if auto_refresh:
        gateway.catalog.start_auto_refresh(gateway.registry, config.CATALOG_REFRESH_INTERVAL)
    logger.info(
        "Inference gateway started",
        backends=gateway.registry.names(),
        models=models,
        environment=config.ENVIRONMENT,
    )
    return gateway


async def shutdown() -> None:
    await get_gateway().close()
    if _use_redis(get_settings()):
        await RedisClient.close_async_pool()
    logger.info("Inference gateway stopped")
