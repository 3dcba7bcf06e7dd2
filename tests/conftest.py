"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import pytest

from inference_gateway.config import Settings
from inference_gateway.models.llm_models import ModelDescriptor


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.OLLAMA_BASE_URL = "http://custom:11434"
    """
    return Settings(
        # === Application ===
        APP_NAME="Inference Gateway (Test)",
        APP_VERSION="0.1.0",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Backends ===
        OLLAMA_BASE_URL="http://localhost:11434",
        OPENAI_API_KEY=None,
        DEEPSEEK_API_KEY=None,
        GEMINI_API_KEY=None,
        QWEN_API_KEY=None,
        BACKEND_TIMEOUT=5.0,

        # === Retry ===
        RETRY_MAX_ATTEMPTS=3,
        RETRY_INITIAL_DELAY=0.01,
        RETRY_MAX_DELAY=0.05,

        # === Redis ===
        REDIS_URL="redis://localhost:6379/15",
        REDIS_MAX_CONNECTIONS=10,
        TELEMETRY_STORE="memory",

        # === Misc ===
        SCENARIO_STRATEGY_OVERRIDES={},
        ENCRYPTION_KEYS=[],
        ACCESS_CONTROL_ENABLED=False,
    )


@pytest.fixture
def create_descriptor():
    """Factory fixture to create ModelDescriptor with custom values.

    Usage:
        def test_something(create_descriptor):
            model = create_descriptor("gpt-4", backend="openai", cost_in=0.03)
    """
    def _create(
        name: str = "llama3",
        backend: str = "ollama",
        cost_in: float = 0.0,
        cost_out: float = 0.0,
        latency: float = 1000.0,
        success_rate: float = 1.0,
        available: bool = True,
    ) -> ModelDescriptor:
        return ModelDescriptor(
            name=name,
            backend=backend,
            context_window=8192,
            cost_per_input_token=cost_in,
            cost_per_output_token=cost_out,
            average_latency_ms=latency,
            min_latency_ms=latency,
            max_latency_ms=latency,
            success_rate=success_rate,
            is_available=available,
        )

    return _create
