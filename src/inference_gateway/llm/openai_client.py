"""
OpenAI-compatible backend adapters.

Covers the OpenAI API itself and providers exposing the same wire protocol
(DeepSeek):
- POST /chat/completions (SSE "data:" lines terminated by [DONE] when streaming)
- GET /models for the catalog and health checks
"""

import json
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional

import structlog

from inference_gateway.llm.base_client import BaseBackendAdapter, ModelPricing
from inference_gateway.llm.exceptions import ContentFilterError, UnknownUpstreamError
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    StreamChunk,
    TokenUsage,
)


logger = structlog.get_logger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class OpenAIClient(BaseBackendAdapter):
    """
    Adapter for the OpenAI chat completions API.

    Usage fields: prompt_tokens, completion_tokens, total_tokens.
    A finish_reason of "content_filter" is surfaced as ContentFilterError.
    """

    name = "openai"
    PRICING = {
        "gpt-4o-mini": ModelPricing(128000, 0.00015 / 1000, 0.0006 / 1000),
        "gpt-4o": ModelPricing(128000, 0.005 / 1000, 0.015 / 1000),
        "gpt-4-turbo": ModelPricing(128000, 0.01 / 1000, 0.03 / 1000),
        "gpt-4": ModelPricing(8192, 0.03 / 1000, 0.06 / 1000),
        "gpt-3.5-turbo": ModelPricing(16385, 0.0005 / 1000, 0.0015 / 1000),
    }
    DEFAULT_PRICING = ModelPricing(128000, 0.005 / 1000, 0.015 / 1000)
    # /models also lists embedding, audio and image models
    CHAT_MODEL_PREFIXES: tuple[str, ...] = ("gpt-", "o1", "o3", "o4", "chatgpt-", "ft:gpt-")
    COMPLETION_ONLY_MARKERS: tuple[str, ...] = ("instruct", "search")

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(base_url, timeout, api_key=api_key, **kwargs)

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, request: InferenceRequest, model: str, stream: bool) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": stream,
        }
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.stop:
            payload["stop"] = request.stop
        if stream:
            payload["stream_options"] = {"include_usage": True}
        return payload

    @staticmethod
    def _usage(data: Optional[Dict[str, Any]]) -> TokenUsage:
        data = data or {}
        return TokenUsage.from_counts(
            data.get("prompt_tokens"),
            data.get("completion_tokens"),
            data.get("total_tokens"),
        )

    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        start = time.perf_counter()
        data = await self._request_json(
            "POST",
            "/chat/completions",
            model=model,
            json=self._build_payload(request, model, stream=False),
        )
        latency_ms = int((time.perf_counter() - start) * 1000)

        choices = data.get("choices") or []
        if not choices:
            raise UnknownUpstreamError(
                "Upstream returned no choices",
                details={"response_id": data.get("id")},
                backend=self.name,
                model=model,
            )
        choice = choices[0]
        finish_reason = choice.get("finish_reason") or "stop"
        if finish_reason == "content_filter":
            raise ContentFilterError("Response blocked by content filter", backend=self.name, model=model)

        usage = self._usage(data.get("usage"))
        logger.info(
            "Chat completion successful",
            backend=self.name,
            model=model,
            latency_ms=latency_ms,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return InferenceResponse(
            content=(choice.get("message") or {}).get("content") or "",
            model=data.get("model", model),
            backend=self.name,
            usage=usage,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            metadata={"id": data.get("id")} if data.get("id") else {},
        )

    async def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(request, model, stream=True)
        finish_reason: Optional[str] = None
        async with aclosing(self._stream_lines("/chat/completions", payload, model)) as lines:
            async for line in lines:
                if not line.startswith(SSE_DATA_PREFIX):
                    continue
                body = line[len(SSE_DATA_PREFIX):].strip()
                if body == SSE_DONE:
                    break
                try:
                    data = json.loads(body)
                except json.JSONDecodeError as e:
                    raise UnknownUpstreamError(
                        f"Malformed SSE event: {e}", backend=self.name, model=model
                    ) from e

                usage = self._usage(data["usage"]) if data.get("usage") else None
                for choice in data.get("choices") or []:
                    finish_reason = choice.get("finish_reason") or finish_reason
                    content = (choice.get("delta") or {}).get("content") or ""
                    if content or usage is None:
                        yield StreamChunk(
                            content=content,
                            model=model,
                            backend=self.name,
                            finish_reason=choice.get("finish_reason"),
                        )
                if usage is not None:
                    # usage-only trailer event (stream_options.include_usage)
                    yield StreamChunk(
                        model=model,
                        backend=self.name,
                        finish_reason=finish_reason or "stop",
                        usage=usage,
                    )

    def supports_generation(self, model_name: str) -> bool:
        lowered = model_name.lower()
        return (
            lowered.startswith(self.CHAT_MODEL_PREFIXES)
            and not any(marker in lowered for marker in self.COMPLETION_ONLY_MARKERS)
            and super().supports_generation(model_name)
        )

    async def _fetch_models(self) -> list[str]:
        data = await self._request_json("GET", "/models", timeout=10.0)
        return [m["id"] for m in data.get("data", []) if m.get("id")]


class DeepSeekClient(OpenAIClient):
    """DeepSeek speaks the OpenAI protocol; only pricing and defaults differ."""

    name = "deepseek"
    PRICING = {
        "deepseek-chat": ModelPricing(32000, 0.00014 / 1000, 0.00028 / 1000),
        "deepseek-coder": ModelPricing(32000, 0.00014 / 1000, 0.00028 / 1000),
    }
    DEFAULT_PRICING = ModelPricing(32000)
    CHAT_MODEL_PREFIXES = ("deepseek-",)

    def __init__(self, base_url: str = "https://api.deepseek.com", timeout: float = 60.0, **kwargs):
        super().__init__(base_url, timeout, **kwargs)

    def _build_payload(self, request: InferenceRequest, model: str, stream: bool) -> Dict[str, Any]:
        payload = super()._build_payload(request, model, stream)
        payload.pop("stream_options", None)
        return payload
