"""
Enumerations for Inference Gateway data models.

All enums are closed taxonomies. Scenario names are deliberately NOT an enum:
they are free strings so unknown scenarios can fall back to the general policy.
"""

from enum import Enum


class StrategyName(str, Enum):
    """Named selection strategies."""

    COST = "cost"
    QUALITY = "quality"
    LATENCY = "latency"
    BALANCED = "balanced"


class ErrorCode(str, Enum):
    """
    Stable error codes surfaced to callers.

    Codes never change meaning between releases; clients may switch on them.
    """

    INVALID_REQUEST = "INVALID_REQUEST"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INSUFFICIENT_QUOTA = "INSUFFICIENT_QUOTA"
    CONTENT_FILTER = "CONTENT_FILTER"
    ACCESS_DENIED = "ACCESS_DENIED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class StepKind(str, Enum):
    """Workflow step kinds."""

    LLM_CALL = "llm-call"
    RAG_RETRIEVAL = "rag-retrieval"
    COMPRESSION = "compression"
    TOOL_USE = "tool-use"


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class AlertType(str, Enum):
    HIGH_FAILURE_RATE = "high_failure_rate"
    HIGH_LATENCY = "high_latency"


class AlertSeverity(str, Enum):
    """Alert severity, ordered from least to most severe."""

    WARNING = "warning"
    CRITICAL = "critical"


class ReportGroupBy(str, Enum):
    """Dimensions a cost report can be grouped by."""

    MODEL = "model"
    BACKEND = "backend"
    SCENARIO = "scenario"
    USER = "user"
    AGENT_TYPE = "agent_type"
    WORKFLOW_STEP = "workflow_step"
