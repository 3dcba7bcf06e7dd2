"""Custom Prometheus metrics for the Inference Gateway.

Scraped by Prometheus from whatever process embeds the gateway.
Alert rules should be configured for:
- inference_requests_total{outcome="failure"} (high error rate per model)
- inference_latency_seconds (p95 per model)
- inference_retries_total (high retry rate indicates backend instability)
- selection_degraded_total (any increase means the catalog had no live model)
"""

from prometheus_client import Counter, Histogram

# === Gateway Metrics ===

inference_requests_total = Counter(
    "inference_requests_total",
    "Gateway calls by model, backend, scenario and outcome",
    ["model", "backend", "scenario", "outcome"],
)
"""
Gateway call counter.

Labels:
- model / backend: resolved model and backend
- scenario: scenario name as passed by the caller
- outcome: success, failure
"""

inference_latency_seconds = Histogram(
    "inference_latency_seconds",
    "Backend call latency in seconds",
    ["model", "backend", "success"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)
"""
Backend call latency histogram, measured at the adapter boundary.

Alert thresholds mirror PerformanceMonitor:
- WARN: p95 > 30s
- CRITICAL: p95 > 60s
"""

inference_tokens_total = Counter(
    "inference_tokens_total",
    "Tokens consumed by model and type",
    ["model", "backend", "token_type"],
)
"""
Token consumption counter.

Labels:
- token_type: input, output
"""

inference_cost_total = Counter(
    "inference_cost_total",
    "Accumulated cost of successful calls",
    ["model", "backend"],
)

# === Retry Metrics ===

inference_retries_total = Counter(
    "inference_retries_total",
    "Retry attempts by error code",
    ["error_code"],
)
"""
Retry attempts counter. Incremented once per backoff sleep, not per call.
"""

# === Selection Metrics ===

selection_decisions_total = Counter(
    "selection_decisions_total",
    "Selection decisions by scenario, strategy and chosen model",
    ["scenario", "strategy", "model"],
)

selection_degraded_total = Counter(
    "selection_degraded_total",
    "Selections made with no available model in the catalog",
    ["scenario"],
)

# === Workflow Metrics ===

workflow_steps_total = Counter(
    "workflow_steps_total",
    "Workflow steps by kind and outcome",
    ["kind", "outcome"],
)
"""
Workflow step counter.

Labels:
- kind: llm-call, rag-retrieval, compression, tool-use
- outcome: success, cached, fallback, error
"""

workflow_step_latency_seconds = Histogram(
    "workflow_step_latency_seconds",
    "Workflow step latency in seconds",
    ["kind"],
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0],
)
