"""
Google Gemini backend adapter.

- POST /models/{model}:generateContent
- POST /models/{model}:streamGenerateContent?alt=sse for streaming
- GET /models for the catalog, GET /models?pageSize=1 as health check
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

BLOCKED_FINISH_REASONS = frozenset({"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT"})


class GeminiClient(BaseBackendAdapter):
    """
    Gemini adapter. Authenticates with the ``x-goog-api-key`` header.

    Usage fields live under ``usageMetadata``: promptTokenCount,
    candidatesTokenCount, totalTokenCount.
    """

    name = "gemini"
    PRICING = {
        "gemini-1.5-pro": ModelPricing(1000000, 0.0035 / 1000, 0.0105 / 1000),
        "gemini-1.5-flash": ModelPricing(1000000, 0.00035 / 1000, 0.00105 / 1000),
    }
    DEFAULT_PRICING = ModelPricing(32000)

    def __init__(
        self,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(base_url, timeout, api_key=api_key, **kwargs)

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        if self.api_key:
            headers["x-goog-api-key"] = self.api_key
        return headers

    @staticmethod
    def _model_path(model: str) -> str:
        return model if model.startswith("models/") else f"models/{model}"

    def _build_payload(self, request: InferenceRequest) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        }
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        if request.top_k is not None:
            generation_config["topK"] = request.top_k
        if request.stop:
            generation_config["stopSequences"] = request.stop

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    @staticmethod
    def _usage(data: Dict[str, Any]) -> TokenUsage:
        meta = data.get("usageMetadata") or {}
        return TokenUsage.from_counts(
            meta.get("promptTokenCount"),
            meta.get("candidatesTokenCount"),
            meta.get("totalTokenCount"),
        )

    @staticmethod
    def _candidate_text(candidate: Dict[str, Any]) -> str:
        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)

    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        start = time.perf_counter()
        data = await self._request_json(
            "POST",
            f"/{self._model_path(model)}:generateContent",
            model=model,
            json=self._build_payload(request),
        )
        latency_ms = int((time.perf_counter() - start) * 1000)

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ContentFilterError(
                    f"Prompt blocked: {block_reason}", backend=self.name, model=model
                )
            raise UnknownUpstreamError(
                "No candidates returned from Gemini", backend=self.name, model=model
            )

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason") or "STOP"
        if finish_reason in BLOCKED_FINISH_REASONS:
            raise ContentFilterError(
                f"Response blocked: {finish_reason}", backend=self.name, model=model
            )

        usage = self._usage(data)
        logger.info(
            "Gemini generation successful",
            model=model,
            latency_ms=latency_ms,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return InferenceResponse(
            content=self._candidate_text(candidate),
            model=model,
            backend=self.name,
            usage=usage,
            finish_reason=finish_reason.lower(),
            latency_ms=latency_ms,
        )

    async def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        path = f"/{self._model_path(model)}:streamGenerateContent"
        upstream = self._stream_lines(path, self._build_payload(request), model, params={"alt": "sse"})
        async with aclosing(upstream) as lines:
            async for line in lines:
                if not line.startswith("data:"):
                    continue
                try:
                    data = json.loads(line[len("data:"):].strip())
                except json.JSONDecodeError:
                    logger.warning("Skipping unparseable Gemini stream event", model=model)
                    continue

                candidates = data.get("candidates") or []
                candidate = candidates[0] if candidates else {}
                finish_reason = candidate.get("finishReason")
                content = self._candidate_text(candidate)
                if not content and not finish_reason:
                    continue
                yield StreamChunk(
                    content=content,
                    model=model,
                    backend=self.name,
                    finish_reason=finish_reason.lower() if finish_reason else None,
                    usage=self._usage(data) if finish_reason and data.get("usageMetadata") else None,
                )

    async def health_check(self) -> bool:
        """Check with a one-item page; a success also refreshes the model list."""
        try:
            await self._request_json("GET", "/models", params={"pageSize": 1}, timeout=5.0)
        except Exception as e:
            logger.warning("Backend health check failed", backend=self.name, error=str(e))
            return False
        try:
            await self.list_models(force_refresh=True)
        except Exception as e:
            logger.warning("Model list refresh after health check failed", backend=self.name, error=str(e))
        return True

    async def _fetch_models(self) -> list[str]:
        data = await self._request_json("GET", "/models", timeout=10.0)
        # embedding and aqa models do not support generateContent
        return [
            m["name"].removeprefix("models/")
            for m in data.get("models", [])
            if m.get("name") and "generateContent" in (m.get("supportedGenerationMethods") or [])
        ]
