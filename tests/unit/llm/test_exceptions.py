"""
Unit tests for the error taxonomy and classification helpers.
"""

import httpx
import pytest

from inference_gateway.llm.exceptions import (
    AuthenticationError,
    ContentFilterError,
    InferenceTimeoutError,
    InvalidRequestError,
    ModelNotFoundError,
    NoModelsAvailableError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitError,
    UnknownUpstreamError,
    classify_http_status,
    is_retryable,
    to_inference_error,
)
from inference_gateway.models.enums import ErrorCode


def _status_error(status: int, body: str = "") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://upstream.test/chat")
    response = httpx.Response(status, text=body, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.mark.parametrize(
    "status,expected",
    [
        (400, InvalidRequestError),
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, ModelNotFoundError),
        (408, InferenceTimeoutError),
        (422, InvalidRequestError),
        (429, RateLimitError),
        (500, ProviderUnavailableError),
        (503, ProviderUnavailableError),
        (504, InferenceTimeoutError),
    ],
)
def test_classify_http_status(status, expected):
    error = classify_http_status(status, f"HTTP {status}", backend="openai", model="gpt-4")

    assert isinstance(error, expected)
    assert error.backend == "openai"
    assert error.details["status_code"] == status


def test_429_with_quota_body_is_quota_exceeded():
    error = classify_http_status(429, "HTTP 429", body='{"error": {"type": "insufficient_quota"}}')
    assert isinstance(error, QuotaExceededError)
    assert error.retryable is False


def test_4xx_content_filter_body():
    error = classify_http_status(400, "HTTP 400", body="blocked by content_filter")
    assert isinstance(error, ContentFilterError)


def test_retryability_follows_taxonomy():
    assert InvalidRequestError("x").retryable is False
    assert ModelNotFoundError("x").retryable is False
    assert AuthenticationError("x").retryable is False
    assert ProviderUnavailableError("x").retryable is True
    assert InferenceTimeoutError("x").retryable is True
    assert RateLimitError("x").retryable is True
    assert UnknownUpstreamError("x").retryable is True
    # selection found nothing to call; retrying cannot help
    assert NoModelsAvailableError("x").retryable is False


def test_to_inference_error_passes_classified_errors_through():
    original = ModelNotFoundError("gone", model="gpt-4")
    error = to_inference_error(original, backend="openai")

    assert error is original
    assert error.backend == "openai"
    assert error.model == "gpt-4"


def test_to_inference_error_httpx_timeout():
    error = to_inference_error(httpx.ReadTimeout("read timed out"), backend="ollama")
    assert isinstance(error, InferenceTimeoutError)
    assert error.backend == "ollama"


def test_to_inference_error_http_status():
    error = to_inference_error(_status_error(502, "bad gateway"))
    assert isinstance(error, ProviderUnavailableError)
    assert error.details["body"] == "bad gateway"


def test_to_inference_error_transport_error():
    error = to_inference_error(httpx.ConnectError("connection refused"))
    assert isinstance(error, ProviderUnavailableError)
    assert error.retryable is True


def test_to_inference_error_builtin_timeout():
    assert isinstance(to_inference_error(TimeoutError()), InferenceTimeoutError)


@pytest.mark.parametrize(
    "message,expected",
    [
        ("Rate limit reached for requests", RateLimitError),
        ("Invalid API key provided", AuthenticationError),
        ("upstream timed out", InferenceTimeoutError),
        ("You exceeded your current quota", QuotaExceededError),
        ("Service Unavailable", ProviderUnavailableError),
        ("something odd happened", UnknownUpstreamError),
    ],
)
def test_to_inference_error_message_heuristics(message, expected):
    assert isinstance(to_inference_error(RuntimeError(message)), expected)


def test_is_retryable():
    assert is_retryable(httpx.ConnectTimeout("slow")) is True
    assert is_retryable(InvalidRequestError("bad")) is False


def test_to_dict_is_structured():
    error = RateLimitError("slow down", {"retry_after": 2}, backend="openai", model="gpt-4")
    error.attempts = 3

    payload = error.to_dict()

    assert payload == {
        "code": ErrorCode.RATE_LIMIT_EXCEEDED.value,
        "message": "slow down",
        "retryable": True,
        "attempts": 3,
        "backend": "openai",
        "model": "gpt-4",
        "details": {"retry_after": 2},
    }
