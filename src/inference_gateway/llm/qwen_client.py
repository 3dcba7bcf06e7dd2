"""
Alibaba Qwen backend adapter (DashScope native API).

- POST /services/aigc/text-generation/generation for generation
- Same endpoint with ``X-DashScope-SSE: enable`` and incremental output for
  streaming

DashScope has no model listing endpoint; the catalog is the static set of
hosted Qwen tiers below.
"""

import json
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional

import structlog

from inference_gateway.llm.base_client import BaseBackendAdapter, ModelPricing
from inference_gateway.llm.exceptions import (
    ContentFilterError,
    UnknownUpstreamError,
    classify_http_status,
)
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    StreamChunk,
    TokenUsage,
)


logger = structlog.get_logger(__name__)

GENERATION_PATH = "/services/aigc/text-generation/generation"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class QwenClient(BaseBackendAdapter):
    """
    Qwen adapter. Authenticates with a Bearer DashScope API key.

    Response shape (non-streaming):
    {
        "output": {"text": "...", "finish_reason": "stop"},
        "usage": {"input_tokens": 12, "output_tokens": 30},
        "request_id": "..."
    }

    While streaming, ``finish_reason`` is the string "null" until the last
    event.
    """

    name = "qwen"
    PRICING = {
        "qwen-max": ModelPricing(8000, 0.02 / 1000, 0.06 / 1000, 2000.0, 0.99),
        "qwen-plus": ModelPricing(4000, 0.008 / 1000, 0.02 / 1000, 1500.0, 0.98),
        "qwen-turbo": ModelPricing(4000, 0.002 / 1000, 0.006 / 1000, 1000.0, 0.97),
        "qwen-long": ModelPricing(30000, 0.01 / 1000, 0.03 / 1000, 3000.0, 0.98),
    }
    DEFAULT_PRICING = ModelPricing(8000, 0.008 / 1000, 0.02 / 1000, 1500.0, 0.98)

    def __init__(
        self,
        base_url: str = "https://dashscope.aliyuncs.com/api/v1",
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
        parameters: Dict[str, Any] = {
            "result_format": "text",
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.top_p is not None:
            parameters["top_p"] = request.top_p
        if request.top_k is not None:
            parameters["top_k"] = request.top_k
        if request.stop:
            parameters["stop"] = request.stop
        if stream:
            parameters["incremental_output"] = True

        return {
            "model": model,
            "input": {
                "messages": [
                    {"role": "system", "content": request.system_prompt or DEFAULT_SYSTEM_PROMPT},
                    {"role": "user", "content": request.prompt},
                ]
            },
            "parameters": parameters,
        }

    @staticmethod
    def _usage(data: Optional[Dict[str, Any]]) -> TokenUsage:
        data = data or {}
        return TokenUsage.from_counts(
            data.get("input_tokens"),
            data.get("output_tokens"),
            data.get("total_tokens"),
        )

    @staticmethod
    def _finish_reason(output: Dict[str, Any]) -> Optional[str]:
        reason = output.get("finish_reason")
        return None if reason in (None, "", "null") else reason

    def _raise_for_event_error(self, data: Dict[str, Any], model: str) -> None:
        code = data.get("code")
        if not code or data.get("output"):
            return
        message = f"{code}: {data.get('message', '')}".strip()
        if code == "DataInspectionFailed":
            raise ContentFilterError(message, backend=self.name, model=model)
        status = data.get("status_code")
        if isinstance(status, int):
            raise classify_http_status(status, message, backend=self.name, model=model, body=json.dumps(data))
        raise UnknownUpstreamError(message, backend=self.name, model=model)

    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        start = time.perf_counter()
        data = await self._request_json(
            "POST",
            GENERATION_PATH,
            model=model,
            json=self._build_payload(request, model, stream=False),
        )
        latency_ms = int((time.perf_counter() - start) * 1000)

        self._raise_for_event_error(data, model)
        output = data.get("output")
        if not output:
            raise UnknownUpstreamError(
                "Upstream returned no output",
                details={"request_id": data.get("request_id")},
                backend=self.name,
                model=model,
            )

        usage = self._usage(data.get("usage"))
        logger.info(
            "Qwen generation successful",
            model=model,
            latency_ms=latency_ms,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return InferenceResponse(
            content=output.get("text") or "",
            model=model,
            backend=self.name,
            usage=usage,
            finish_reason=self._finish_reason(output) or "stop",
            latency_ms=latency_ms,
            metadata={"request_id": data["request_id"]} if data.get("request_id") else {},
        )

    async def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        upstream = self._stream_lines(
            GENERATION_PATH,
            self._build_payload(request, model, stream=True),
            model,
            headers={"X-DashScope-SSE": "enable", "Accept": "text/event-stream"},
        )
        async with aclosing(upstream) as lines:
            async for line in lines:
                if not line.startswith("data:"):
                    continue
                try:
                    data = json.loads(line[len("data:"):].strip())
                except json.JSONDecodeError as e:
                    raise UnknownUpstreamError(
                        f"Malformed SSE event: {e}", backend=self.name, model=model
                    ) from e

                self._raise_for_event_error(data, model)
                output = data.get("output") or {}
                finish_reason = self._finish_reason(output)
                yield StreamChunk(
                    content=output.get("text") or "",
                    model=model,
                    backend=self.name,
                    finish_reason=finish_reason,
                    usage=self._usage(data.get("usage")) if finish_reason and data.get("usage") else None,
                )
                if finish_reason:
                    break

    async def _fetch_models(self) -> list[str]:
        return list(self.PRICING)
