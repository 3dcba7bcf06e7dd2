"""
Backend registry: the configured adapters, looked up by name, with a simple
availability flag per backend refreshed by health checks.
"""

import asyncio
from typing import Optional

import structlog

from inference_gateway.config import Settings
from inference_gateway.llm.base_client import BaseBackendAdapter
from inference_gateway.llm.exceptions import ModelNotFoundError
from inference_gateway.llm.gemini_client import GeminiClient
from inference_gateway.llm.ollama_client import OllamaClient
from inference_gateway.llm.openai_client import DeepSeekClient, OpenAIClient
from inference_gateway.llm.qwen_client import QwenClient
from inference_gateway.security.service import SecurityService


logger = structlog.get_logger(__name__)


class BackendRegistry:
    """Holds adapters by name. Registration order is preserved."""

    def __init__(self) -> None:
        self._adapters: dict[str, BaseBackendAdapter] = {}
        self._available: dict[str, bool] = {}

    def register(self, adapter: BaseBackendAdapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing registered backend", backend=adapter.name)
        self._adapters[adapter.name] = adapter
        self._available[adapter.name] = True
        logger.info("Registered backend", backend=adapter.name, adapter=repr(adapter))

    def get(self, name: str) -> BaseBackendAdapter:
        """
        Raises:
            ModelNotFoundError: no adapter registered under ``name``
        """
        try:
            return self._adapters[name]
        except KeyError:
            raise ModelNotFoundError(
                f"Backend not registered: {name}",
                details={"registered": self.names()},
                backend=name,
            ) from None

    def __contains__(self, name: str) -> bool:
        return name in self._adapters

    def names(self) -> list[str]:
        return list(self._adapters)

    def adapters(self) -> list[BaseBackendAdapter]:
        return list(self._adapters.values())

    def is_available(self, name: str) -> bool:
        return self._available.get(name, False)

    def mark_available(self, name: str, available: bool) -> None:
        if name not in self._adapters:
            return
        if self._available.get(name) != available:
            logger.info("Backend availability changed", backend=name, available=available)
        self._available[name] = available

    def available_backends(self) -> list[str]:
        return [name for name in self._adapters if self._available.get(name)]

    async def check_health(self) -> dict[str, bool]:
        """Health-check every backend concurrently. Never raises."""
        names = self.names()
        results = await asyncio.gather(
            *(self._adapters[name].health_check() for name in names),
            return_exceptions=True,
        )
        status: dict[str, bool] = {}
        for name, result in zip(names, results):
            healthy = result is True
            self.mark_available(name, healthy)
            status[name] = healthy
        return status

    async def close_all(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()


def build_registry(settings: Settings, security: Optional[SecurityService] = None) -> BackendRegistry:
    """
    Build the adapters whose configuration is present.

    Ollama is always registered. Hosted backends need an API key; when a
    SecurityService holds a stored credential for the backend, that one wins
    over the plaintext setting.
    """
    def credential(backend: str, configured: Optional[str]) -> Optional[str]:
        if security is not None:
            stored = security.get_credential(backend)
            if stored:
                return stored
        return configured

    common = {
        "timeout": settings.BACKEND_TIMEOUT,
        "model_list_ttl": settings.MODEL_LIST_REFRESH_SECONDS,
    }
    registry = BackendRegistry()
    registry.register(OllamaClient(base_url=settings.OLLAMA_BASE_URL, **common))

    openai_key = credential("openai", settings.OPENAI_API_KEY)
    if openai_key:
        registry.register(OpenAIClient(base_url=settings.OPENAI_BASE_URL, api_key=openai_key, **common))

    deepseek_key = credential("deepseek", settings.DEEPSEEK_API_KEY)
    if deepseek_key:
        registry.register(DeepSeekClient(base_url=settings.DEEPSEEK_BASE_URL, api_key=deepseek_key, **common))

    gemini_key = credential("gemini", settings.GEMINI_API_KEY)
    if gemini_key:
        registry.register(GeminiClient(base_url=settings.GEMINI_BASE_URL, api_key=gemini_key, **common))

    qwen_key = credential("qwen", settings.QWEN_API_KEY)
    if qwen_key:
        registry.register(QwenClient(base_url=settings.QWEN_BASE_URL, api_key=qwen_key, **common))

    logger.info("Backend registry built", backends=registry.names())
    return registry
