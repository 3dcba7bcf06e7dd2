"""
Placeholder substitution for llm-call prompts.

Substitution is literal string replacement; unknown placeholders are left
as-is so a prompt can still carry template syntax meant for the model.
"""

from typing import Any, Mapping, Optional, Sequence

from inference_gateway.models.workflow_models import LLMCallInput

KNOWLEDGE = "{{knowledge}}"
COMPRESSED_HISTORY = "{{compressedHistory}}"

_INPUT_PLACEHOLDERS = {
    "{{userInput}}": "user_input",
    "{{reportData}}": "report_data",
    "{{symptoms}}": "symptoms",
}


def _scalar(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def render_prompt(
    step_input: LLMCallInput,
    previous: Sequence[tuple[str, Mapping[str, Any]]],
) -> str:
    """
    Substitute placeholders in ``step_input.prompt``.

    Args:
        step_input: The llm-call input whose prompt is rendered
        previous: ``(step_id, output)`` pairs of the steps already run, in order

    Supported placeholders:
        {{step_<index>_<field>}}  scalar field of the index-th prior output
        {{<step_id>.<field>}}     scalar field of a prior output by step id
        {{knowledge}}             prior retrieval documents joined by blank lines
        {{compressedHistory}}     prior compression summary
        {{userInput}} {{reportData}} {{symptoms}}  this step's own input fields
    """
    prompt = step_input.prompt

    for index, (step_id, output) in enumerate(previous):
        for field, value in output.items():
            text = _scalar(value)
            if text is None:
                continue
            prompt = prompt.replace(f"{{{{step_{index}_{field}}}}}", text)
            prompt = prompt.replace(f"{{{{{step_id}.{field}}}}}", text)

    for _, output in previous:
        documents = output.get("documents")
        if isinstance(documents, list) and KNOWLEDGE in prompt:
            joined = "\n\n".join(
                d.get("content", "") if isinstance(d, Mapping) else str(d) for d in documents
            )
            prompt = prompt.replace(KNOWLEDGE, joined)
        summary = output.get("summary")
        if isinstance(summary, str) and COMPRESSED_HISTORY in prompt:
            prompt = prompt.replace(COMPRESSED_HISTORY, summary)

    for placeholder, attr in _INPUT_PLACEHOLDERS.items():
        value = getattr(step_input, attr)
        if value:
            prompt = prompt.replace(placeholder, value)

    return prompt
