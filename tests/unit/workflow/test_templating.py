"""
Unit tests for llm-call prompt placeholder substitution.
"""

from inference_gateway.models.workflow_models import LLMCallInput
from inference_gateway.workflow.templating import render_prompt


def test_positional_and_named_placeholders():
    previous = [
        ("extract", {"content": "Python, SQL", "token_usage": 12}),
        ("score", {"result": 87.5}),
    ]
    step_input = LLMCallInput(
        prompt="{{step_0_content}} | {{extract.token_usage}} | {{score.result}} | {{step_1_result}}"
    )

    assert render_prompt(step_input, previous) == "Python, SQL | 12 | 87.5 | 87.5"


def test_non_scalar_and_bool_values_are_not_substituted():
    previous = [("a", {"flag": True, "items": [1, 2], "content": "ok"})]
    step_input = LLMCallInput(prompt="{{a.flag}} {{a.items}} {{a.content}}")

    assert render_prompt(step_input, previous) == "{{a.flag}} {{a.items}} ok"


def test_unknown_placeholders_survive():
    step_input = LLMCallInput(prompt="Keep {{step_5_content}} and {{userInput}}")

    assert render_prompt(step_input, []) == "Keep {{step_5_content}} and {{userInput}}"


def test_knowledge_and_compressed_history():
    previous = [
        ("rag", {"documents": [{"content": "A"}, {"content": "B"}], "token_usage": 0}),
        ("squash", {"summary": "short history", "token_usage": 4}),
    ]
    step_input = LLMCallInput(prompt="K: {{knowledge}}\nH: {{compressedHistory}}")

    assert render_prompt(step_input, previous) == "K: A\n\nB\nH: short history"


def test_own_input_fields():
    step_input = LLMCallInput(
        prompt="{{userInput}} / {{reportData}} / {{symptoms}}",
        user_input="I led a team",
        report_data="Q3 report",
        symptoms="headache",
    )

    assert render_prompt(step_input, []) == "I led a team / Q3 report / headache"
