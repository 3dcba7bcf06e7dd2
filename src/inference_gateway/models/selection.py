"""
Selection decision models.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from inference_gateway.models.enums import StrategyName


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallerContext(BaseModel):
    """Observability-only context attached to a decision. Never used to choose."""
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    agent_type: Optional[str] = None
    workflow_step: Optional[str] = None


class SelectionConstraints(BaseModel):
    """Optional soft constraints; strategies fall back to all candidates when none qualify."""
    model_config = ConfigDict(frozen=True)

    max_cost: Optional[float] = Field(default=None, ge=0.0)
    max_latency_ms: Optional[float] = Field(default=None, ge=0.0)


class SelectionDecision(BaseModel):
    """
    One selection, appended to the decision log and never edited.

    ``degraded`` is set when no catalog entry was available and the first
    catalog entry was returned instead.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    scenario: str
    selected_model: str
    selected_backend: str
    strategy_used: StrategyName
    available_models_count: int = Field(..., ge=0)
    model_cost: float = 0.0
    model_latency_ms: float = 0.0
    model_success_rate: float = 1.0
    degraded: bool = False
    context: CallerContext = Field(default_factory=CallerContext)

    @property
    def model_key(self) -> str:
        return f"{self.selected_backend}:{self.selected_model}"
