"""
Request/response models for the inference path.

These are the backend-neutral shapes: adapters translate them to and from
provider wire formats, and nothing provider-specific leaks past the adapter.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def split_model_key(key: str) -> tuple[str, str]:
    """Split a ``backend:model`` identifier on the first colon.

    Model names may themselves contain colons (``ollama:qwen2.5:7b``).
    """
    backend, sep, model = key.partition(":")
    if not sep or not backend or not model:
        raise ValueError(f"Model identifier must look like 'backend:model', got {key!r}")
    return backend, model


class InferenceRequest(BaseModel):
    """
    Generic text-generation request.

    Immutable once constructed. Field constraints are checked on construction;
    the gateway converts violations into a non-retryable InvalidRequestError.
    """
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., description="User prompt (must contain non-whitespace text)")
    system_prompt: Optional[str] = Field(default=None, description="Optional system prompt")
    model: Optional[str] = Field(
        default=None,
        description="Pinned 'backend:model'; when absent the selection engine picks one",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=1)
    stop: Optional[list[str]] = Field(default=None, description="Stop sequences")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata; template_name/template_variables, agent_type, workflow_step are recognised",
    )

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value

    @field_validator("model")
    @classmethod
    def _model_key_shape(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            split_model_key(value)
        return value


class TokenUsage(BaseModel):
    """Normalized token counts. Absent upstream counts become 0."""
    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @classmethod
    def from_counts(cls, input_tokens: Optional[int], output_tokens: Optional[int],
                    total_tokens: Optional[int] = None) -> "TokenUsage":
        inp = input_tokens or 0
        out = output_tokens or 0
        return cls(input_tokens=inp, output_tokens=out, total_tokens=total_tokens or inp + out)


class InferenceResponse(BaseModel):
    """One successful generation. Never mutated after construction."""
    model_config = ConfigDict(frozen=True)

    content: str
    model: str = Field(..., description="Resolved model name")
    backend: str = Field(..., description="Resolved backend name")
    usage: TokenUsage = Field(default_factory=TokenUsage)
    finish_reason: str = "stop"
    latency_ms: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def model_key(self) -> str:
        return f"{self.backend}:{self.model}"


class StreamChunk(BaseModel):
    """One streamed fragment. Usage is only reported on the final chunk, if at all."""
    model_config = ConfigDict(frozen=True)

    content: str = ""
    model: str
    backend: str
    finish_reason: Optional[str] = None
    usage: Optional[TokenUsage] = None


class ModelDescriptor(BaseModel):
    """
    Catalog entry for one model on one backend.

    Costs are per token. Latency/success fields start from static defaults
    and are overlaid with observed values when the catalog refreshes.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    backend: str
    context_window: int = Field(default=4096, ge=0)
    cost_per_input_token: float = Field(default=0.0, ge=0.0)
    cost_per_output_token: float = Field(default=0.0, ge=0.0)
    average_latency_ms: float = Field(default=0.0, ge=0.0)
    min_latency_ms: float = Field(default=0.0, ge=0.0)
    max_latency_ms: float = Field(default=0.0, ge=0.0)
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    is_available: bool = True

    @property
    def key(self) -> str:
        return f"{self.backend}:{self.name}"

    @property
    def unit_cost(self) -> float:
        return self.cost_per_input_token + self.cost_per_output_token

    def cost_for(self, usage: TokenUsage) -> float:
        return (
            usage.input_tokens * self.cost_per_input_token
            + usage.output_tokens * self.cost_per_output_token
        )
