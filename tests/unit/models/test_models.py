"""
Unit tests for the shared pydantic models.
"""

import pytest
from pydantic import ValidationError

from inference_gateway.models.enums import ExecutionMode
from inference_gateway.models.llm_models import (
    InferenceRequest,
    ModelDescriptor,
    TokenUsage,
    split_model_key,
)
from inference_gateway.models.workflow_models import StepResult, WorkflowDefinition, WorkflowResult


def test_split_model_key_keeps_colons_in_model_name():
    assert split_model_key("ollama:qwen2.5:7b") == ("ollama", "qwen2.5:7b")


@pytest.mark.parametrize("key", ["llama3", ":llama3", "ollama:", ""])
def test_split_model_key_rejects_malformed(key):
    with pytest.raises(ValueError):
        split_model_key(key)


def test_request_defaults_and_immutability():
    request = InferenceRequest(prompt="hi")

    assert request.temperature == 0.7
    assert request.max_tokens == 1000
    assert request.model is None
    with pytest.raises(ValidationError):
        request.prompt = "changed"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"prompt": ""},
        {"prompt": "hi", "temperature": -0.1},
        {"prompt": "hi", "top_p": 1.5},
        {"prompt": "hi", "top_k": 0},
    ],
)
def test_request_constraints(kwargs):
    with pytest.raises(ValidationError):
        InferenceRequest(**kwargs)


def test_token_usage_from_counts():
    assert TokenUsage.from_counts(None, None) == TokenUsage()
    assert TokenUsage.from_counts(3, 4).total_tokens == 7
    assert TokenUsage.from_counts(3, 4, 9).total_tokens == 9


def test_descriptor_cost():
    descriptor = ModelDescriptor(
        name="gpt-4", backend="openai", cost_per_input_token=0.03, cost_per_output_token=0.06
    )

    assert descriptor.key == "openai:gpt-4"
    assert descriptor.unit_cost == pytest.approx(0.09)
    assert descriptor.cost_for(TokenUsage.from_counts(100, 10)) == pytest.approx(3.6)


def test_descriptor_rejects_negative_cost():
    with pytest.raises(ValidationError):
        ModelDescriptor(name="m", backend="b", cost_per_input_token=-1)


def test_step_requires_id():
    with pytest.raises(ValidationError):
        WorkflowDefinition.model_validate({"steps": [{"id": "", "kind": "llm-call", "input": {"prompt": "p"}}]})


def test_workflow_result_token_usage_by_step():
    result = WorkflowResult(
        session_id="s",
        mode=ExecutionMode.PARALLEL,
        success=True,
        results=[
            StepResult(step_id="a", kind="llm-call", output={}, token_usage=5),
            StepResult(step_id="b", kind="tool-use", output={}, token_usage=0),
        ],
        total_token_usage=5,
    )

    assert result.token_usage_by_step == {"a": 5, "b": 0}
