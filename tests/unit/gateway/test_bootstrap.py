"""
Unit tests for process-wide wiring.
"""

from inference_gateway.config import Settings
from inference_gateway.gateway.bootstrap import (
    get_audit_logger,
    get_cache,
    get_gateway,
    get_orchestrator,
    get_registry,
    get_security_service,
    get_settings,
    get_usage_store,
)
from inference_gateway.gateway.service import InferenceGateway
from inference_gateway.persistence.repository import InMemoryUsageStore
from inference_gateway.workflow.collaborators import ToolRegistry
from inference_gateway.workflow.orchestrator import WorkflowOrchestrator


def test_get_settings():
    """Test settings singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
    assert isinstance(settings1, Settings)


def test_get_gateway_is_singleton_sharing_components():
    gateway1 = get_gateway()
    gateway2 = get_gateway()

    assert gateway1 is gateway2
    assert isinstance(gateway1, InferenceGateway)
    assert gateway1.registry is get_registry()
    assert gateway1.audit_logger is get_audit_logger()
    assert gateway1.catalog.performance_monitor is gateway1.performance_monitor


def test_access_control_is_opt_in(monkeypatch):
    config = get_settings()
    monkeypatch.setattr(config, "ACCESS_CONTROL_ENABLED", False)
    get_gateway.cache_clear()
    try:
        assert get_gateway().security is None

        monkeypatch.setattr(config, "ACCESS_CONTROL_ENABLED", True)
        get_gateway.cache_clear()

        assert get_gateway().security is get_security_service()
    finally:
        get_gateway.cache_clear()


def test_registry_always_has_ollama():
    assert "ollama" in get_registry()


def test_memory_telemetry_by_default():
    if get_settings().TELEMETRY_STORE == "memory":
        assert isinstance(get_usage_store(), InMemoryUsageStore)


def test_in_memory_stores_are_bounded():
    config = get_settings()
    if config.TELEMETRY_STORE != "memory":
        return

    assert get_usage_store().max_records == config.USAGE_MEMORY_MAX_RECORDS
    assert get_cache().backend.max_entries == config.WORKFLOW_CACHE_MAX_ENTRIES


def test_get_orchestrator_not_cached():
    """Orchestrators differ per caller, the gateway and cache underneath do not."""
    tools = ToolRegistry()
    orchestrator1 = get_orchestrator(tools=tools)
    orchestrator2 = get_orchestrator()

    assert isinstance(orchestrator1, WorkflowOrchestrator)
    assert orchestrator1 is not orchestrator2
    assert orchestrator1.tools is tools
    assert orchestrator1.gateway is orchestrator2.gateway
    assert orchestrator1.cache is get_cache()
