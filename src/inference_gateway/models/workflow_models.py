"""
Workflow data models.

A step is a tagged union discriminated on ``kind``: each variant carries its
own typed input. Steps are mutable working objects; the orchestrator fills in
output, latency, token usage and error while running them. The durable
artifact of a run is the frozen WorkflowResult.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from inference_gateway.models.enums import ExecutionMode


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str = "user"
    content: str


class RetrievedDocument(BaseModel):
    """One ranked document returned by the retrieval collaborator."""
    model_config = ConfigDict(frozen=True)

    content: str
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CompressionResult(BaseModel):
    """What the compression collaborator returns."""
    model_config = ConfigDict(frozen=True)

    summary: str
    original_tokens: int = Field(default=0, ge=0)
    compressed_tokens: int = Field(default=0, ge=0)
    compression_ratio: float = Field(default=1.0, ge=0.0)


# === Step inputs ===

class LLMCallInput(BaseModel):
    """
    Input of an llm-call step.

    ``prompt`` may contain placeholders: ``{{knowledge}}``,
    ``{{compressedHistory}}``, ``{{userInput}}``, ``{{reportData}}``,
    ``{{symptoms}}``, ``{{step_<index>_<field>}}`` and ``{{<step_id>.<field>}}``.
    """
    prompt: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    scenario: str = "general"
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    user_input: Optional[str] = None
    report_data: Optional[str] = None
    symptoms: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RAGRetrievalInput(BaseModel):
    query: str
    k: Optional[int] = Field(default=None, ge=1)


class CompressionInput(BaseModel):
    """Either a message list or a single content string to compress."""
    messages: Optional[list[ChatMessage]] = None
    content: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)


class ToolUseInput(BaseModel):
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


# === Steps ===

class _StepBase(BaseModel):
    """Fields shared by every step kind."""
    model_config = ConfigDict(validate_assignment=False)

    id: str = Field(..., min_length=1, description="Unique within one run")
    name: str = ""
    fallback: Optional[str] = Field(
        default=None,
        description="Static content substituted when the step fails",
    )
    output: Optional[Dict[str, Any]] = None
    latency_ms: int = 0
    token_usage: int = 0
    error: Optional[Dict[str, Any]] = None
    cached: bool = False


class LLMCallStep(_StepBase):
    kind: Literal["llm-call"] = "llm-call"
    input: LLMCallInput


class RAGRetrievalStep(_StepBase):
    kind: Literal["rag-retrieval"] = "rag-retrieval"
    input: RAGRetrievalInput


class CompressionStep(_StepBase):
    kind: Literal["compression"] = "compression"
    input: CompressionInput


class ToolUseStep(_StepBase):
    kind: Literal["tool-use"] = "tool-use"
    input: ToolUseInput


WorkflowStep = Annotated[
    Union[LLMCallStep, RAGRetrievalStep, CompressionStep, ToolUseStep],
    Field(discriminator="kind"),
]


class WorkflowDefinition(BaseModel):
    """Parses a list of raw step dicts into typed steps."""
    steps: list[WorkflowStep]


class WorkflowContext(BaseModel):
    """Shared context of a run. ``variables`` feed conditional predicates."""
    session_id: str
    user_id: Optional[str] = None
    agent_type: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


# === Results ===

class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_id: str
    kind: str
    output: Dict[str, Any]
    token_usage: int = 0
    latency_ms: int = 0
    cached: bool = False
    error: Optional[Dict[str, Any]] = None


class WorkflowResult(BaseModel):
    """Returned once per run; stored in the cache under ``workflow:result:{session}``."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    mode: ExecutionMode
    success: bool
    results: list[StepResult] = Field(default_factory=list)
    total_token_usage: int = 0
    duration_ms: int = 0

    @property
    def token_usage_by_step(self) -> Dict[str, int]:
        return {r.step_id: r.token_usage for r in self.results}
