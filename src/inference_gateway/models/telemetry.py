"""
Telemetry records: usage rows, per-model performance aggregates, alerts,
cost reports and audit log entries.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from inference_gateway.models.enums import AlertSeverity, AlertType, ReportGroupBy
from inference_gateway.models.selection import utcnow


class UsageRecord(BaseModel):
    """One row per gateway invocation. Append-only."""
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    model: str
    backend: str
    scenario: str = "general"
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    latency_ms: int = Field(default=0, ge=0)
    success: bool = True
    error_code: Optional[str] = None
    agent_type: Optional[str] = None
    workflow_step: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def model_key(self) -> str:
        return f"{self.backend}:{self.model}"


class PerformanceMetrics(BaseModel):
    """
    Running per-model aggregates.

    ``min_latency_ms`` of 0 with ``total_calls`` 0 means "no sample yet".
    """
    model: str
    backend: str
    total_calls: int = 0
    success_count: int = 0
    failure_count: int = 0
    average_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    success_rate: float = 0.0
    failure_rate: float = 0.0
    last_updated: datetime = Field(default_factory=utcnow)

    @property
    def model_key(self) -> str:
        return f"{self.backend}:{self.model}"


class Alert(BaseModel):
    """Derived on demand from PerformanceMetrics; never persisted."""
    model_config = ConfigDict(frozen=True)

    model: str
    backend: str
    alert_type: AlertType
    severity: AlertSeverity
    threshold: float
    observed: float
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class CostReportItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    cost: float = 0.0
    call_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    average_latency_ms: float = 0.0


class CostReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    group_by: ReportGroupBy
    total_cost: float = 0.0
    total_calls: int = 0
    items: list[CostReportItem] = Field(default_factory=list)


class CostThreshold(BaseModel):
    """Per-user spending limits; either bound may be unset."""
    model_config = ConfigDict(frozen=True)

    daily_limit: Optional[float] = Field(default=None, ge=0.0)
    monthly_limit: Optional[float] = Field(default=None, ge=0.0)


class ThresholdStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    exceeded: bool
    daily_cost: float = 0.0
    monthly_cost: float = 0.0
    daily_limit: Optional[float] = None
    monthly_limit: Optional[float] = None


class AuditLogEntry(BaseModel):
    """A stored call or error log line. Content is truncated and masked."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    event: str = "call"
    model: str
    backend: str
    scenario: Optional[str] = None
    user_id: Optional[str] = None
    request_content: Optional[str] = None
    response_content: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    success: bool = True
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class SecurityAuditEvent(BaseModel):
    """Credential and access-control audit trail entry."""
    model_config = ConfigDict(frozen=True)

    action: str
    resource: str
    user_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
