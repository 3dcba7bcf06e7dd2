"""
Abstract base adapter for upstream language-model backends.

Defines the contract every backend adapter (Ollama, OpenAI-compatible,
Gemini, ...) implements: call, stream, health_check, list_models and
get_model_info. Provider payload shapes stay inside the concrete adapter;
only InferenceRequest/InferenceResponse/StreamChunk/ModelDescriptor cross
this boundary.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx
import structlog

from inference_gateway.llm.exceptions import (
    InferenceError,
    UnknownUpstreamError,
    to_inference_error,
)
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    ModelDescriptor,
    StreamChunk,
)
from inference_gateway.telemetry.metrics import inference_latency_seconds


logger = structlog.get_logger(__name__)

# Substrings of model ids that never serve text generation
NON_GENERATIVE_MARKERS = (
    "embed",
    "whisper",
    "tts",
    "transcribe",
    "dall-e",
    "moderation",
    "realtime",
    "audio",
    "image",
)


@dataclass(frozen=True)
class ModelPricing:
    """Static catalog data for a model family. Costs are per token."""

    context_window: int
    cost_per_input_token: float = 0.0
    cost_per_output_token: float = 0.0
    default_latency_ms: float = 1000.0
    default_success_rate: float = 0.99


class BaseBackendAdapter(ABC):
    """
    Abstract base class for backend adapters.

    Responsibilities:
    - Translate InferenceRequest to the provider's wire format and back
    - Normalize token usage into {input, output, total}, absent counts as 0
    - Classify every upstream failure into the InferenceError taxonomy
    - Cache the provider's model list for ``model_list_ttl`` seconds, keeping
      only models that can serve text generation

    Does NOT handle:
    - Retries (the RetryExecutor wraps ``call``; streams are never retried)
    - Model selection or telemetry beyond the latency histogram
    """

    name: str = "base"
    PRICING: Dict[str, ModelPricing] = {}
    DEFAULT_PRICING = ModelPricing(context_window=4096)

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        api_key: Optional[str] = None,
        model_list_ttl: float = 60.0,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize base adapter.

        Args:
            base_url: Base URL of the upstream API
            timeout: Per-request timeout in seconds
            api_key: Credential, already decrypted
            model_list_ttl: Seconds a fetched model list stays fresh
            connection_limits: httpx pool limits (default: 10 connections)
            transport: Custom httpx transport (tests use httpx.MockTransport)
            name: Registry name override (defaults to the class ``name``)
            clock: Monotonic clock used for the model list cache
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.model_list_ttl = model_list_ttl
        if name:
            self.name = name
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._clock = clock
        self._models: Optional[list[str]] = None
        self._models_fetched_at: float = 0.0
        self._models_lock = asyncio.Lock()

        logger.info(
            "Initialized backend adapter",
            adapter_class=self.__class__.__name__,
            backend=self.name,
            base_url=self.base_url,
            timeout=timeout,
        )

    # === HTTP plumbing ===

    def _default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                headers=self._default_headers(),
                transport=self._transport,
                follow_redirects=True,
            )
            logger.debug("Created new httpx AsyncClient", backend=self.name)
        return self._client

    async def _request_json(
        self,
        method: str,
        path: str,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body, or raise a classified error."""
        start = time.perf_counter()
        success = "false"
        try:
            client = await self._get_client()
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            data = response.json()
            success = "true"
            return data
        except ValueError as e:
            # json decoding failure on a 2xx response
            raise UnknownUpstreamError(
                f"Malformed JSON from upstream: {e}",
                backend=self.name,
                model=model,
            ) from e
        except Exception as e:
            error = to_inference_error(e, backend=self.name, model=model)
            logger.warning(
                "Backend request failed",
                backend=self.name,
                model=model,
                path=path,
                error_code=error.code.value,
                error=error.message,
            )
            raise error from e
        finally:
            if model:
                inference_latency_seconds.labels(
                    model=model, backend=self.name, success=success
                ).observe(time.perf_counter() - start)

    async def _stream_lines(
        self,
        path: str,
        payload: Dict[str, Any],
        model: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        """Yield non-empty response lines of a streaming request.

        Closing the generator early closes the upstream response; that is a
        consumer disconnect, not an error.
        """
        client = await self._get_client()
        try:
            async with client.stream("POST", path, json=payload, params=params, headers=headers) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()
                async for line in response.aiter_lines():
                    if line.strip():
                        yield line
        except (httpx.HTTPError, TimeoutError) as e:
            raise to_inference_error(e, backend=self.name, model=model) from e

    # === Contract ===

    @abstractmethod
    async def call(self, request: InferenceRequest, model: str) -> InferenceResponse:
        """
        Issue one blocking generation request.

        Args:
            request: Validated request
            model: Model name on this backend (without the ``backend:`` prefix)

        Returns:
            InferenceResponse with normalized token usage

        Raises:
            InferenceError: classified upstream failure
        """

    @abstractmethod
    def stream(self, request: InferenceRequest, model: str) -> AsyncIterator[StreamChunk]:
        """
        Stream a generation as incremental chunks.

        The final chunk carries ``finish_reason`` and, when the upstream
        reports it, token usage.
        """

    @abstractmethod
    async def _fetch_models(self) -> list[str]:
        """Fetch the model name list from the upstream catalog endpoint."""

    def supports_generation(self, model_name: str) -> bool:
        """Whether ``model_name`` can serve ``call``/``stream`` on this backend."""
        lowered = model_name.lower()
        return not any(marker in lowered for marker in NON_GENERATIVE_MARKERS)

    async def _fetch_generation_models(self) -> list[str]:
        models = await self._fetch_models()
        usable = [m for m in models if self.supports_generation(m)]
        if len(usable) != len(models):
            logger.debug(
                "Skipped non-generation models",
                backend=self.name,
                skipped=sorted(set(models) - set(usable)),
            )
        return usable

    async def health_check(self) -> bool:
        """
        Cheap capability check.

        Never raises. A successful check refreshes the cached model list,
        which is idempotent when the upstream catalog is unchanged.
        """
        try:
            models = await self._fetch_generation_models()
        except Exception as e:
            logger.warning("Backend health check failed", backend=self.name, error=str(e))
            return False
        self._store_models(models)
        logger.debug("Backend health check passed", backend=self.name, model_count=len(models))
        return True

    def _store_models(self, models: list[str]) -> None:
        self._models = list(models)
        self._models_fetched_at = self._clock()

    def _models_fresh(self) -> bool:
        return (
            self._models is not None
            and self._clock() - self._models_fetched_at < self.model_list_ttl
        )

    async def list_models(self, force_refresh: bool = False) -> list[str]:
        """
        List model names, served from cache while fresh.

        A failed refresh falls back to the stale list when one exists.

        Raises:
            InferenceError: upstream failed and nothing was cached yet
        """
        if not force_refresh and self._models_fresh():
            return list(self._models or [])

        async with self._models_lock:
            if not force_refresh and self._models_fresh():
                return list(self._models or [])
            try:
                models = await self._fetch_generation_models()
            except InferenceError as e:
                if self._models is not None:
                    logger.warning(
                        "Model list refresh failed, serving stale list",
                        backend=self.name,
                        error=e.message,
                    )
                    return list(self._models)
                raise
            self._store_models(models)
            logger.debug("Refreshed model list", backend=self.name, model_count=len(models))
            return list(models)

    def pricing_for(self, model_name: str) -> ModelPricing:
        """Longest-prefix lookup in the static pricing table."""
        lowered = model_name.lower()
        for prefix in sorted(self.PRICING, key=len, reverse=True):
            if lowered.startswith(prefix):
                return self.PRICING[prefix]
        return self.DEFAULT_PRICING

    async def get_model_info(self, model_name: str) -> ModelDescriptor:
        """
        Describe one model.

        Never raises for an unknown model: it is returned with
        ``is_available=False`` so the catalog can keep it.
        """
        try:
            available = model_name in await self.list_models()
        except InferenceError as e:
            logger.warning(
                "Cannot verify model availability",
                backend=self.name,
                model=model_name,
                error=e.message,
            )
            available = False

        pricing = self.pricing_for(model_name)
        return ModelDescriptor(
            name=model_name,
            backend=self.name,
            context_window=pricing.context_window,
            cost_per_input_token=pricing.cost_per_input_token,
            cost_per_output_token=pricing.cost_per_output_token,
            average_latency_ms=pricing.default_latency_ms,
            min_latency_ms=pricing.default_latency_ms,
            max_latency_ms=pricing.default_latency_ms,
            success_rate=pricing.default_success_rate,
            is_available=available,
        )

    async def close(self) -> None:
        """Close the HTTP client. Safe to call more than once."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed backend adapter", backend=self.name)
        self._client = None

    async def __aenter__(self) -> "BaseBackendAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"name={self.name}, "
            f"base_url={self.base_url}, "
            f"timeout={self.timeout}s)"
        )
