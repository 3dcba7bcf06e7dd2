"""
Inference Gateway: the single public entry point for text generation.

call(request, caller_id, scenario):
    1. Validate the request (InvalidRequestError, no telemetry)
    2. Use the pinned ``backend:model`` or ask the selector for one
    3. Resolve the adapter; a model missing from the catalog is ModelNotFoundError
    4. Optionally enforce access and render a named prompt template
    5. Execute adapter.call through the RetryExecutor
    6. Success: cost, UsageRecord, PerformanceMetrics, audit entry
    7. Failure: PerformanceMetrics (success=False), error log, re-raise

stream(...) resolves the same way but is never retried; it records one call
when the upstream stream ends or fails. A consumer that stops reading early is
a disconnect, not a failure.
"""

import asyncio
import time
from contextlib import aclosing
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Optional

import structlog
from pydantic import ValidationError

from inference_gateway.llm.base_client import BaseBackendAdapter
from inference_gateway.llm.exceptions import (
    InferenceError,
    InvalidRequestError,
    ModelNotFoundError,
    to_inference_error,
)
from inference_gateway.llm.prompt_templates import PromptTemplateManager
from inference_gateway.llm.registry import BackendRegistry
from inference_gateway.models.enums import ReportGroupBy
from inference_gateway.models.llm_models import (
    InferenceRequest,
    InferenceResponse,
    ModelDescriptor,
    StreamChunk,
    TokenUsage,
)
from inference_gateway.models.selection import CallerContext, SelectionConstraints
from inference_gateway.models.telemetry import UsageRecord
from inference_gateway.gateway.catalog import ModelCatalog
from inference_gateway.retry.executor import RetryExecutor
from inference_gateway.security.service import SecurityService
from inference_gateway.selection.selector import DEFAULT_SCENARIO, ModelSelector
from inference_gateway.telemetry.audit_logger import AuditLogger
from inference_gateway.telemetry.metrics import (
    inference_cost_total,
    inference_requests_total,
    inference_tokens_total,
)
from inference_gateway.telemetry.performance_monitor import PerformanceMonitor
from inference_gateway.telemetry.usage_tracker import UsageTracker

logger = structlog.get_logger(__name__)


class InferenceGateway:
    """
    Wires selection, retry, adapters and recorders together.

    Attributes:
        registry: Configured backend adapters
        catalog: Immutable model snapshot read once per call
        selector: Scenario-based model selection
        executor: Retry policy for blocking calls
        usage_tracker / performance_monitor / audit_logger: Recorders
        templates: Optional prompt template manager
        security: Optional access control; when set every call is checked
    """

    def __init__(
        self,
        registry: BackendRegistry,
        catalog: ModelCatalog,
        selector: ModelSelector,
        executor: RetryExecutor,
        usage_tracker: UsageTracker,
        performance_monitor: PerformanceMonitor,
        audit_logger: AuditLogger,
        templates: Optional[PromptTemplateManager] = None,
        security: Optional[SecurityService] = None,
    ):
        self.registry = registry
        self.catalog = catalog
        self.selector = selector
        self.executor = executor
        self.usage_tracker = usage_tracker
        self.performance_monitor = performance_monitor
        self.audit_logger = audit_logger
        self.templates = templates
        self.security = security

    # === Request preparation ===

    @staticmethod
    def validate(request: InferenceRequest | Mapping[str, Any]) -> InferenceRequest:
        """
        Validate field constraints.

        Raises:
            InvalidRequestError: any constraint violation
        """
        data = request.model_dump() if isinstance(request, InferenceRequest) else dict(request)
        try:
            return InferenceRequest.model_validate(data)
        except ValidationError as e:
            raise InvalidRequestError(
                "Request validation failed",
                details={
                    "errors": [
                        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                        for err in e.errors()
                    ]
                },
            ) from e

    def _resolve(
        self,
        request: InferenceRequest,
        scenario: str,
        caller_id: Optional[str],
        constraints: Optional[SelectionConstraints],
    ) -> tuple[ModelDescriptor, BaseBackendAdapter]:
        if request.model:
            descriptor = self.catalog.get(request.model)
            if descriptor is None:
                raise ModelNotFoundError(
                    f"Model not found in catalog: {request.model}",
                    details={"model": request.model},
                )
        else:
            context = CallerContext(
                user_id=caller_id,
                agent_type=request.metadata.get("agent_type"),
                workflow_step=request.metadata.get("workflow_step"),
            )
            descriptor = self.selector.select(self.catalog.models(), scenario, context, constraints)

        adapter = self.registry.get(descriptor.backend)
        if self.security is not None and caller_id:
            self.security.enforce_access(caller_id, descriptor.key)
        return descriptor, adapter

    def _render(self, request: InferenceRequest, backend: str) -> InferenceRequest:
        template_name = request.metadata.get("template_name")
        if not template_name or self.templates is None:
            return request
        rendered = self.templates.render(
            template_name,
            request.metadata.get("template_variables") or {},
            backend=backend,
            default=request.prompt,
        )
        # a template may render to whitespace
        return self.validate(request.model_copy(update={"prompt": rendered}))

    async def _prepare(
        self,
        request: InferenceRequest | Mapping[str, Any],
        caller_id: Optional[str],
        scenario: str,
        constraints: Optional[SelectionConstraints],
    ) -> tuple[InferenceRequest, ModelDescriptor, BaseBackendAdapter]:
        validated = self.validate(request)
        descriptor, adapter = self._resolve(validated, scenario, caller_id, constraints)
        return self._render(validated, descriptor.backend), descriptor, adapter

    # === Telemetry ===

    async def _record_success(
        self,
        request: InferenceRequest,
        response: InferenceResponse,
        descriptor: ModelDescriptor,
        scenario: str,
        caller_id: Optional[str],
    ) -> None:
        usage = response.usage
        record = UsageRecord(
            user_id=caller_id,
            model=descriptor.name,
            backend=descriptor.backend,
            scenario=scenario,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            cost=response.cost,
            latency_ms=response.latency_ms,
            success=True,
            agent_type=request.metadata.get("agent_type"),
            workflow_step=request.metadata.get("workflow_step"),
        )
        try:
            await self.usage_tracker.record_usage(record)
            await self.performance_monitor.record_metrics(
                descriptor.name, descriptor.backend, response.latency_ms, True
            )
            self.audit_logger.log_call(request, response, scenario=scenario, user_id=caller_id)
        except Exception as e:
            logger.error("Failed to record call telemetry", model=descriptor.key, error=str(e))

        labels = {"model": descriptor.name, "backend": descriptor.backend}
        inference_requests_total.labels(scenario=scenario, outcome="success", **labels).inc()
        inference_tokens_total.labels(token_type="input", **labels).inc(usage.input_tokens)
        inference_tokens_total.labels(token_type="output", **labels).inc(usage.output_tokens)
        inference_cost_total.labels(**labels).inc(response.cost)

    async def _record_failure(
        self,
        request: InferenceRequest,
        error: InferenceError,
        descriptor: ModelDescriptor,
        scenario: str,
        caller_id: Optional[str],
        latency_ms: int,
    ) -> None:
        try:
            await self.performance_monitor.record_metrics(
                descriptor.name, descriptor.backend, latency_ms, False
            )
            self.audit_logger.log_error(
                error,
                model=descriptor.name,
                backend=descriptor.backend,
                scenario=scenario,
                user_id=caller_id,
                request=request,
                latency_ms=latency_ms,
            )
        except Exception as e:
            logger.error("Failed to record failure telemetry", model=descriptor.key, error=str(e))
        inference_requests_total.labels(
            model=descriptor.name, backend=descriptor.backend, scenario=scenario, outcome="failure"
        ).inc()

    # === Public API ===

    async def call(
        self,
        request: InferenceRequest | Mapping[str, Any],
        caller_id: Optional[str] = None,
        scenario: str = DEFAULT_SCENARIO,
        constraints: Optional[SelectionConstraints] = None,
    ) -> InferenceResponse:
        """
        Generate a completion.

        Raises:
            InvalidRequestError: before any network activity or telemetry
            ModelNotFoundError: pinned model absent from the catalog
            AccessDeniedError: caller lacks a grant (only with a SecurityService)
            InferenceError: classified upstream error after retries
        """
        prepared, descriptor, adapter = await self._prepare(request, caller_id, scenario, constraints)
        log = logger.bind(model=descriptor.key, scenario=scenario, caller_id=caller_id)
        log.debug("Dispatching inference call")

        start = time.perf_counter()
        try:
            raw = await self.executor.execute(
                lambda: adapter.call(prepared, descriptor.name),
                backend=descriptor.backend,
                model=descriptor.name,
            )
        except InferenceError as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            await self._record_failure(prepared, e, descriptor, scenario, caller_id, latency_ms)
            raise

        latency_ms = int((time.perf_counter() - start) * 1000)
        metadata = dict(raw.metadata)
        if raw.model != descriptor.name:
            metadata["upstream_model"] = raw.model
        response = raw.model_copy(update={
            "model": descriptor.name,
            "backend": descriptor.backend,
            "latency_ms": latency_ms,
            "cost": descriptor.cost_for(raw.usage),
            "metadata": metadata,
        })
        await self._record_success(prepared, response, descriptor, scenario, caller_id)
        log.info(
            "Inference call completed",
            latency_ms=latency_ms,
            total_tokens=response.usage.total_tokens,
            cost=response.cost,
        )
        return response

    async def stream(
        self,
        request: InferenceRequest | Mapping[str, Any],
        caller_id: Optional[str] = None,
        scenario: str = DEFAULT_SCENARIO,
        constraints: Optional[SelectionConstraints] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a completion. Not retried.

        The call is recorded once the upstream finishes (tokens from the
        final chunk's usage, zeros if the upstream reports none) or fails.
        """
        prepared, descriptor, adapter = await self._prepare(request, caller_id, scenario, constraints)
        log = logger.bind(model=descriptor.key, scenario=scenario, caller_id=caller_id)

        start = time.perf_counter()
        usage: Optional[TokenUsage] = None
        parts: list[str] = []
        finish_reason = "stop"
        try:
            async with aclosing(adapter.stream(prepared, descriptor.name)) as upstream:
                async for chunk in upstream:
                    if chunk.usage is not None:
                        usage = chunk.usage
                    if chunk.finish_reason:
                        finish_reason = chunk.finish_reason
                    parts.append(chunk.content)
                    yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            log.info("Stream closed by consumer", chunks=len(parts))
            raise
        except Exception as e:
            error = to_inference_error(e, backend=descriptor.backend, model=descriptor.name)
            latency_ms = int((time.perf_counter() - start) * 1000)
            await self._record_failure(prepared, error, descriptor, scenario, caller_id, latency_ms)
            if error is e:
                raise
            raise error from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        usage = usage or TokenUsage()
        response = InferenceResponse(
            content="".join(parts),
            model=descriptor.name,
            backend=descriptor.backend,
            usage=usage,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            cost=descriptor.cost_for(usage),
            metadata={"streamed": True},
        )
        await self._record_success(prepared, response, descriptor, scenario, caller_id)
        log.info("Stream completed", latency_ms=latency_ms, chunks=len(parts))

    # === Catalog ===

    async def reload_models(self) -> int:
        """Health-check every backend, then rebuild the catalog."""
        await self.registry.check_health()
        return await self.catalog.refresh(self.registry)

    def available_models(self) -> list[ModelDescriptor]:
        return [m for m in self.catalog.models() if m.is_available]

    def models_by_backend(self, backend: str) -> list[ModelDescriptor]:
        return self.catalog.by_backend(backend)

    def get_model_info(self, model_key: str) -> Optional[ModelDescriptor]:
        return self.catalog.get(model_key)

    # === Reporting ===

    def selection_log(self, limit: int = 100):
        return self.selector.get_selection_log(limit)

    def selection_statistics(self) -> dict:
        return self.selector.get_selection_statistics()

    async def cost_report(self, start: datetime, end: datetime, group_by: ReportGroupBy = ReportGroupBy.MODEL):
        return await self.usage_tracker.generate_cost_report(start, end, group_by)

    async def performance_metrics(self, model_key: Optional[str] = None):
        if model_key is None:
            return await self.performance_monitor.get_all_metrics()
        return await self.performance_monitor.get_metrics(model_key)

    async def performance_alerts(self):
        return await self.performance_monitor.check_alerts()

    def query_logs(self, **filters):
        return self.audit_logger.query_logs(**filters)

    async def close(self) -> None:
        await self.catalog.stop_auto_refresh()
        await self.registry.close_all()
