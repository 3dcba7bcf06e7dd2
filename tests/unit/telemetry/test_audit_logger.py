"""
Unit tests for AuditLogger and content sanitization.
"""

from inference_gateway.llm.exceptions import InferenceTimeoutError
from inference_gateway.models.llm_models import InferenceRequest, InferenceResponse, TokenUsage
from inference_gateway.telemetry.audit_logger import AuditLogger, sanitize_content


def test_sanitize_masks_credentials_then_truncates():
    text = "use sk-abcdefghijklmnopqrstu and Bearer abcdefghijklmnopqrstuvwx please"

    masked = sanitize_content(text, max_chars=1000)

    assert "sk-abc" not in masked
    assert "abcdefghijklmnopqrstuvwx" not in masked
    assert masked.count("[REDACTED]") == 2
    assert sanitize_content("x" * 20, max_chars=5) == "xxxxx...[truncated]"
    assert sanitize_content(None) is None


def test_log_call_stores_truncated_entry():
    audit = AuditLogger(max_entries=10, content_max_chars=10)
    request = InferenceRequest(prompt="a very long prompt indeed")
    response = InferenceResponse(
        content="short",
        model="llama3",
        backend="ollama",
        usage=TokenUsage.from_counts(7, 3),
        latency_ms=120,
        cost=0.002,
    )

    entry = audit.log_call(request, response, scenario="general", user_id="u-1")

    assert entry.request_content == "a very lon...[truncated]"
    assert entry.response_content == "short"
    assert entry.input_tokens == 7
    assert entry.details["cost"] == 0.002
    assert audit.query_logs() == [entry]


def test_log_error_entry():
    audit = AuditLogger()
    error = InferenceTimeoutError("timed out", backend="ollama", model="llama3")
    error.attempts = 3

    entry = audit.log_error(error, "llama3", "ollama", scenario="general", latency_ms=5000)

    assert entry.success is False
    assert entry.error_code == "TIMEOUT"
    assert entry.details == {"attempts": 3, "retryable": True}


def test_query_filters_newest_first_and_bounded():
    audit = AuditLogger(max_entries=3)
    request = InferenceRequest(prompt="hi")
    for model in ("a", "b", "c", "d"):
        audit.log_call(request, InferenceResponse(content="x", model=model, backend="ollama"), user_id=model)

    assert [e.model for e in audit.query_logs()] == ["d", "c", "b"]
    assert [e.model for e in audit.query_logs(user_id="c")] == ["c"]
    assert audit.query_logs(success=False) == []
    assert len(audit.query_logs(limit=1)) == 1
