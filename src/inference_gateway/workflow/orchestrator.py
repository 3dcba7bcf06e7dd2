"""
Workflow Orchestrator: runs steps against the gateway and collaborators.

Modes:
    sequential   one step after another; each step sees prior outputs
    parallel     all steps at once; no step sees another's output
    conditional  predicate over the context picks one branch, run sequentially

Per step:
    1. Cache lookup under ``workflow:cache:{session}:{step}``; a hit reuses the
       output with zero token usage
    2. Dispatch by step type
    3. Success: cache the output (TTL), record metrics, log
    4. Classified failure: substitute the fallback output and continue

Programming errors (duplicate step ids, unsupported step types, bugs) abort
the run. A run succeeds only if every step completed without an error; a step
that produced fallback output counts as failed.
"""

import asyncio
import time
from typing import Any, Callable, Mapping, Optional, Sequence

import structlog

from inference_gateway.config import Settings
from inference_gateway.gateway.service import InferenceGateway
from inference_gateway.llm.exceptions import (
    InferenceError,
    InvalidRequestError,
    to_inference_error,
)
from inference_gateway.models.enums import ExecutionMode
from inference_gateway.models.workflow_models import (
    ChatMessage,
    CompressionStep,
    LLMCallStep,
    RAGRetrievalStep,
    StepResult,
    ToolUseStep,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
    WorkflowStep,
)
from inference_gateway.persistence.cache import JsonCache
from inference_gateway.telemetry.metrics import (
    workflow_step_latency_seconds,
    workflow_steps_total,
)
from inference_gateway.telemetry.performance_monitor import PerformanceMonitor
from inference_gateway.workflow.collaborators import Compressor, Retriever, ToolRegistry
from inference_gateway.workflow.templating import render_prompt

logger = structlog.get_logger(__name__)

ORCHESTRATOR_BACKEND = "orchestrator"

Predicate = Callable[[WorkflowContext], bool]


def parse_steps(raw_steps: Sequence[Mapping[str, Any]]) -> list[WorkflowStep]:
    """Build typed steps from plain dicts (``kind`` selects the variant)."""
    return WorkflowDefinition.model_validate({"steps": list(raw_steps)}).steps


class WorkflowOrchestrator:
    CACHE_PREFIX = "workflow:cache:"
    RESULT_PREFIX = "workflow:result:"

    def __init__(
        self,
        gateway: InferenceGateway,
        cache: JsonCache,
        performance_monitor: Optional[PerformanceMonitor] = None,
        retriever: Optional[Retriever] = None,
        compressor: Optional[Compressor] = None,
        tools: Optional[ToolRegistry] = None,
        cache_ttl: int = 3600,
        default_temperature: float = 0.7,
        default_max_tokens: int = 1000,
        rag_top_k: int = 5,
        compression_max_tokens: int = 500,
    ):
        self.gateway = gateway
        self.cache = cache
        self.performance_monitor = performance_monitor
        self.retriever = retriever
        self.compressor = compressor
        self.tools = tools or ToolRegistry()
        self.cache_ttl = cache_ttl
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.rag_top_k = rag_top_k
        self.compression_max_tokens = compression_max_tokens

        self._handlers = {
            LLMCallStep: self._run_llm_call,
            RAGRetrievalStep: self._run_rag_retrieval,
            CompressionStep: self._run_compression,
            ToolUseStep: self._run_tool_use,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateway: InferenceGateway,
        cache: JsonCache,
        **collaborators,
    ) -> "WorkflowOrchestrator":
        return cls(
            gateway,
            cache,
            cache_ttl=settings.WORKFLOW_CACHE_TTL,
            default_temperature=settings.WORKFLOW_DEFAULT_TEMPERATURE,
            default_max_tokens=settings.WORKFLOW_DEFAULT_MAX_TOKENS,
            rag_top_k=settings.WORKFLOW_RAG_TOP_K,
            compression_max_tokens=settings.WORKFLOW_COMPRESSION_MAX_TOKENS,
            **collaborators,
        )

    # === Public API ===

    async def execute_sequential(
        self, steps: Sequence[WorkflowStep], context: WorkflowContext
    ) -> WorkflowResult:
        return await self._sequential(steps, context, ExecutionMode.SEQUENTIAL)

    async def execute_parallel(
        self, steps: Sequence[WorkflowStep], context: WorkflowContext
    ) -> WorkflowResult:
        self._check_steps(steps)
        log = logger.bind(session_id=context.session_id, mode=ExecutionMode.PARALLEL.value)
        log.debug("Executing workflow", steps=len(steps))

        start = time.perf_counter()
        tasks = [asyncio.ensure_future(self._run_step(step, context, [])) for step in steps]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # an aborted run must not leave siblings writing to the cache
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return await self._finish(context, ExecutionMode.PARALLEL, list(results), start)

    async def execute_conditional(
        self,
        predicate: Predicate,
        if_steps: Sequence[WorkflowStep],
        else_steps: Sequence[WorkflowStep],
        context: WorkflowContext,
    ) -> WorkflowResult:
        branch = bool(predicate(context))
        logger.debug(
            "Conditional workflow branch chosen",
            session_id=context.session_id,
            branch="if" if branch else "else",
        )
        return await self._sequential(
            if_steps if branch else else_steps, context, ExecutionMode.CONDITIONAL
        )

    async def get_last_result(self, session_id: str) -> Optional[WorkflowResult]:
        """Most recent WorkflowResult stored for ``session_id``, if still cached."""
        return await self.cache.get_model(f"{self.RESULT_PREFIX}{session_id}", WorkflowResult)

    # === Run bookkeeping ===

    def _check_steps(self, steps: Sequence[WorkflowStep]) -> None:
        seen: set[str] = set()
        for step in steps:
            if type(step) not in self._handlers:
                raise TypeError(f"Unsupported workflow step type: {type(step).__name__}")
            if step.id in seen:
                raise ValueError(f"Duplicate workflow step id: {step.id}")
            seen.add(step.id)

    async def _sequential(
        self,
        steps: Sequence[WorkflowStep],
        context: WorkflowContext,
        mode: ExecutionMode,
    ) -> WorkflowResult:
        self._check_steps(steps)
        logger.debug(
            "Executing workflow", session_id=context.session_id, mode=mode.value, steps=len(steps)
        )

        start = time.perf_counter()
        results: list[StepResult] = []
        for step in steps:
            previous = [(r.step_id, r.output) for r in results]
            results.append(await self._run_step(step, context, previous))
        return await self._finish(context, mode, results, start)

    async def _finish(
        self,
        context: WorkflowContext,
        mode: ExecutionMode,
        results: list[StepResult],
        start: float,
    ) -> WorkflowResult:
        result = WorkflowResult(
            session_id=context.session_id,
            mode=mode,
            success=all(r.error is None for r in results),
            results=results,
            total_token_usage=sum(r.token_usage for r in results),
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        await self.cache.set_model(f"{self.RESULT_PREFIX}{context.session_id}", result, self.cache_ttl)
        logger.info(
            "Workflow completed",
            session_id=context.session_id,
            mode=mode.value,
            success=result.success,
            steps=len(results),
            total_tokens=result.total_token_usage,
            duration_ms=result.duration_ms,
        )
        return result

    # === Step execution ===

    def _cache_key(self, session_id: str, step_id: str) -> str:
        return f"{self.CACHE_PREFIX}{session_id}:{step_id}"

    async def _run_step(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        previous: list[tuple[str, Mapping[str, Any]]],
    ) -> StepResult:
        log = logger.bind(session_id=context.session_id, step_id=step.id, kind=step.kind)
        cache_key = self._cache_key(context.session_id, step.id)
        start = time.perf_counter()

        hit = await self.cache.get_model(cache_key, StepResult)
        if hit is not None:
            latency_ms = int((time.perf_counter() - start) * 1000)
            step.output, step.token_usage, step.latency_ms, step.cached = hit.output, 0, latency_ms, True
            workflow_steps_total.labels(kind=step.kind, outcome="cached").inc()
            log.debug("Workflow step cache hit")
            return StepResult(
                step_id=step.id,
                kind=step.kind,
                output=hit.output,
                token_usage=0,
                latency_ms=latency_ms,
                cached=True,
            )

        handler = self._handlers[type(step)]
        try:
            output = await handler(step, context, previous)
        except InferenceError as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            return await self._fallback(step, e, latency_ms, log)

        latency_ms = int((time.perf_counter() - start) * 1000)
        token_usage = int(output.get("token_usage") or 0)
        step.output, step.token_usage, step.latency_ms, step.error = output, token_usage, latency_ms, None

        result = StepResult(
            step_id=step.id,
            kind=step.kind,
            output=output,
            token_usage=token_usage,
            latency_ms=latency_ms,
        )
        await self.cache.set_model(cache_key, result, self.cache_ttl)

        workflow_step_latency_seconds.labels(kind=step.kind).observe(latency_ms / 1000)
        await self._record_step_metrics(step, latency_ms, True)
        workflow_steps_total.labels(kind=step.kind, outcome="success").inc()
        log.info("Workflow step completed", latency_ms=latency_ms, token_usage=token_usage)
        return result

    async def _fallback(self, step: WorkflowStep, error: InferenceError, latency_ms: int, log) -> StepResult:
        if step.fallback is not None:
            output = {"content": step.fallback, "is_fallback": True, "error": error.message}
            outcome = "fallback"
        else:
            output = {"error": error.message, "code": error.code.value, "success": False}
            outcome = "error"

        step.output, step.token_usage, step.latency_ms, step.error = output, 0, latency_ms, error.to_dict()

        workflow_step_latency_seconds.labels(kind=step.kind).observe(latency_ms / 1000)
        await self._record_step_metrics(step, latency_ms, False)
        workflow_steps_total.labels(kind=step.kind, outcome=outcome).inc()
        log.warning(
            "Workflow step failed, substituting fallback",
            error_code=error.code.value,
            error=error.message,
            has_fallback=step.fallback is not None,
        )
        return StepResult(
            step_id=step.id,
            kind=step.kind,
            output=output,
            latency_ms=latency_ms,
            error=step.error,
        )

    async def _record_step_metrics(self, step: WorkflowStep, latency_ms: int, success: bool) -> None:
        if self.performance_monitor is None or not isinstance(step, LLMCallStep):
            return
        try:
            await self.performance_monitor.record_metrics(
                f"workflow-step-{step.id}", ORCHESTRATOR_BACKEND, latency_ms, success
            )
        except Exception as e:
            logger.error("Failed to record workflow step metrics", step_id=step.id, error=str(e))

    # === Step kinds ===

    async def _run_llm_call(
        self,
        step: LLMCallStep,
        context: WorkflowContext,
        previous: list[tuple[str, Mapping[str, Any]]],
    ) -> dict[str, Any]:
        spec = step.input
        request = {
            "prompt": render_prompt(spec, previous),
            "system_prompt": spec.system_prompt,
            "model": spec.model,
            "temperature": spec.temperature if spec.temperature is not None else self.default_temperature,
            "max_tokens": spec.max_tokens or self.default_max_tokens,
            "metadata": {
                **spec.metadata,
                "workflow_step": step.id,
                "agent_type": context.agent_type,
                "session_id": context.session_id,
            },
        }
        response = await self.gateway.call(request, caller_id=context.user_id, scenario=spec.scenario)
        return {
            "content": response.content,
            "model": response.model_key,
            "token_usage": response.usage.total_tokens,
        }

    async def _run_rag_retrieval(
        self,
        step: RAGRetrievalStep,
        context: WorkflowContext,
        previous: list[tuple[str, Mapping[str, Any]]],
    ) -> dict[str, Any]:
        if self.retriever is None:
            raise InvalidRequestError("No retriever configured for rag-retrieval steps")
        k = step.input.k or self.rag_top_k
        try:
            documents = await self.retriever.retrieve(step.input.query, k)
        except Exception as e:
            raise to_inference_error(e) from e
        return {
            "documents": [d.model_dump() for d in documents],
            "token_usage": 0,
        }

    async def _run_compression(
        self,
        step: CompressionStep,
        context: WorkflowContext,
        previous: list[tuple[str, Mapping[str, Any]]],
    ) -> dict[str, Any]:
        if self.compressor is None:
            raise InvalidRequestError("No compressor configured for compression steps")
        messages = list(step.input.messages or [])
        if not messages and step.input.content:
            messages = [ChatMessage(content=step.input.content)]
        if not messages:
            raise InvalidRequestError("Compression step has nothing to compress", details={"step_id": step.id})

        try:
            compressed = await self.compressor.compress(
                messages, step.input.max_tokens or self.compression_max_tokens
            )
        except Exception as e:
            raise to_inference_error(e) from e
        return {**compressed.model_dump(), "token_usage": compressed.compressed_tokens}

    async def _run_tool_use(
        self,
        step: ToolUseStep,
        context: WorkflowContext,
        previous: list[tuple[str, Mapping[str, Any]]],
    ) -> dict[str, Any]:
        try:
            result = await self.tools.invoke(step.input.tool, step.input.arguments)
        except Exception as e:
            raise to_inference_error(e) from e
        return {"result": result, "token_usage": 0}
