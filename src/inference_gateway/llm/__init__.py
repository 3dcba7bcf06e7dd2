"""
Backend adapters and the error taxonomy they share.

Components:
- BaseBackendAdapter: HTTP plumbing, model-list caching, pricing lookup
- OllamaClient, OpenAIClient, DeepSeekClient, GeminiClient, QwenClient: provider adapters
- PromptTemplateManager: Jinja2 prompt templates rendered before dispatch
- exceptions: InferenceError hierarchy and classification helpers

The BackendRegistry lives in ``inference_gateway.llm.registry``.
"""

from inference_gateway.llm.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ContentFilterError,
    InferenceError,
    InferenceTimeoutError,
    InvalidRequestError,
    ModelNotFoundError,
    NoModelsAvailableError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitError,
    UnknownUpstreamError,
)
from inference_gateway.llm.base_client import BaseBackendAdapter, ModelPricing
from inference_gateway.llm.ollama_client import OllamaClient
from inference_gateway.llm.openai_client import DeepSeekClient, OpenAIClient
from inference_gateway.llm.gemini_client import GeminiClient
from inference_gateway.llm.qwen_client import QwenClient
from inference_gateway.llm.prompt_templates import PromptTemplateManager

__all__ = [
    "BaseBackendAdapter",
    "ModelPricing",
    "OllamaClient",
    "OpenAIClient",
    "DeepSeekClient",
    "GeminiClient",
    "QwenClient",
    "PromptTemplateManager",
    "InferenceError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "ProviderUnavailableError",
    "NoModelsAvailableError",
    "InferenceTimeoutError",
    "RateLimitError",
    "AuthenticationError",
    "QuotaExceededError",
    "ContentFilterError",
    "AccessDeniedError",
    "UnknownUpstreamError",
]
