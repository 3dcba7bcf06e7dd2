"""
Ollama backend adapter.

Talks to a local or self-hosted Ollama server:
- POST /api/chat for generation (NDJSON when streaming)
- GET /api/tags for the model catalog and health checks

Local models cost nothing; the pricing table only carries context windows.
"""

import json
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict

import structlog

from inference_gateway.llm.base_client import BaseBackendAdapter, ModelPricing
from inference_gateway.llm.exceptions import UnknownUpstreamError
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    StreamChunk,
    TokenUsage,
)


logger = structlog.get_logger(__name__)


class OllamaClient(BaseBackendAdapter):
    """
    Ollama adapter using httpx for async HTTP communication.

    Response shape of POST /api/chat (non-streaming):
    {
        "model": "qwen2.5:7b",
        "message": {"role": "assistant", "content": "..."},
        "done": true,
        "done_reason": "stop",
        "prompt_eval_count": 50,
        "eval_count": 150
    }
    """

    name = "ollama"
    PRICING = {
        "llama3": ModelPricing(context_window=8192, default_latency_ms=2000.0),
        "llama3.1": ModelPricing(context_window=131072, default_latency_ms=2000.0),
        "qwen2.5": ModelPricing(context_window=32768, default_latency_ms=2000.0),
        "mistral": ModelPricing(context_window=32768, default_latency_ms=2000.0),
    }
    DEFAULT_PRICING = ModelPricing(context_window=4096, default_latency_ms=2000.0)

    def __init__(self, base_url: str = "http://localhost:11434", timeout: float = 60.0, **kwargs):
        super().__init__(base_url, timeout, **kwargs)

    def _build_payload(self, request: InferenceRequest, model: str, stream: bool) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        options: Dict[str, Any] = {
            "temperature": request.temperature,
            "num_predict": request.max_tokens,
        }
        if request.top_p is not None:
            options["top_p"] = request.top_p
        if request.top_k is not None:
            options["top_k"] = request.top_k
        if request.stop:
            options["stop"] = request.stop

        return {"model": model, "messages": messages, "stream": stream, "options": options}

    @staticmethod
    def _usage(data: Dict[str, Any]) -> TokenUsage:
        return TokenUsage.from_counts(data.get("prompt_eval_count"), data.get("eval_count"))

    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        start = time.perf_counter()
        data = await self._request_json(
            "POST",
            "/api/chat",
            model=model,
            json=self._build_payload(request, model, stream=False),
        )
        latency_ms = int((time.perf_counter() - start) * 1000)

        message = data.get("message") or {}
        usage = self._usage(data)
        logger.info(
            "Ollama generation successful",
            model=model,
            latency_ms=latency_ms,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return InferenceResponse(
            content=message.get("content", ""),
            model=data.get("model", model),
            backend=self.name,
            usage=usage,
            finish_reason=data.get("done_reason") or ("stop" if data.get("done") else "length"),
            latency_ms=latency_ms,
            metadata={
                "total_duration": data.get("total_duration"),
                "eval_duration": data.get("eval_duration"),
            },
        )

    async def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(request, model, stream=True)
        async with aclosing(self._stream_lines("/api/chat", payload, model)) as lines:
            async for line in lines:
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise UnknownUpstreamError(
                        f"Malformed stream line from Ollama: {e}",
                        backend=self.name,
                        model=model,
                    ) from e
                if data.get("error"):
                    raise UnknownUpstreamError(str(data["error"]), backend=self.name, model=model)

                done = bool(data.get("done"))
                yield StreamChunk(
                    content=(data.get("message") or {}).get("content", ""),
                    model=model,
                    backend=self.name,
                    finish_reason=(data.get("done_reason") or "stop") if done else None,
                    usage=self._usage(data) if done else None,
                )
                if done:
                    break

    async def _fetch_models(self) -> list[str]:
        data = await self._request_json("GET", "/api/tags", timeout=10.0)
        return [m["name"] for m in data.get("models", []) if m.get("name")]

