"""
Exception taxonomy for the inference path.

Every failure that reaches a caller is an InferenceError carrying a stable
ErrorCode and a ``retryable`` flag. The Retry Executor decides on that flag
alone; adapters and collaborators convert whatever they catch through
``to_inference_error`` so nothing unclassified crosses a layer boundary.
"""

from typing import Any, Optional

import httpx

from inference_gateway.models.enums import ErrorCode


class InferenceError(Exception):
    """
    Base exception for all classified inference errors.

    ``to_dict()`` is the structured, stack-trace-free payload handed to callers.
    """

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    retryable: bool = True

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        *,
        backend: Optional[str] = None,
        model: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.backend = backend
        self.model = model
        self.attempts = 1
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "attempts": self.attempts,
        }
        if self.backend:
            payload["backend"] = self.backend
        if self.model:
            payload["model"] = self.model
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class InvalidRequestError(InferenceError):
    """Request failed validation before any network activity."""
    code = ErrorCode.INVALID_REQUEST
    retryable = False


class ModelNotFoundError(InferenceError):
    code = ErrorCode.MODEL_NOT_FOUND
    retryable = False


class ProviderUnavailableError(InferenceError):
    """Backend unreachable or returning 5xx. Surfaced after retry exhaustion."""
    code = ErrorCode.PROVIDER_UNAVAILABLE
    retryable = True


class NoModelsAvailableError(ProviderUnavailableError):
    """The catalog is empty: there is nothing to select from."""
    retryable = False


class InferenceTimeoutError(InferenceError):
    code = ErrorCode.TIMEOUT
    retryable = True


class RateLimitError(InferenceError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    retryable = True


class AuthenticationError(InferenceError):
    code = ErrorCode.AUTHENTICATION_FAILED
    retryable = False


class QuotaExceededError(InferenceError):
    code = ErrorCode.INSUFFICIENT_QUOTA
    retryable = False


class ContentFilterError(InferenceError):
    code = ErrorCode.CONTENT_FILTER
    retryable = False


class AccessDeniedError(InferenceError):
    """Caller lacks a grant for the resolved model."""
    code = ErrorCode.ACCESS_DENIED
    retryable = False


class UnknownUpstreamError(InferenceError):
    """Anything unrecognised. Retryable, conservatively."""
    code = ErrorCode.UNKNOWN_ERROR
    retryable = True


# Ordered: first matching fragment wins.
_MESSAGE_HEURISTICS: list[tuple[tuple[str, ...], type[InferenceError]]] = [
    (("rate limit", "too many requests", "429"), RateLimitError),
    (("unauthorized", "forbidden", "api key", "authentication", "401", "403"), AuthenticationError),
    (("timeout", "timed out"), InferenceTimeoutError),
    (("quota", "insufficient_quota", "billing"), QuotaExceededError),
    (("content filter", "content_filter", "safety"), ContentFilterError),
    (("model not found", "no such model", "404"), ModelNotFoundError),
    (("unavailable", "bad gateway", "502", "503", "504", "connection refused"), ProviderUnavailableError),
    (("invalid", "bad request", "400"), InvalidRequestError),
]


CONTENT_FILTER_MARKERS = ("content_filter", "content filter", "datainspectionfailed")


def classify_http_status(
    status_code: int,
    message: str,
    *,
    backend: Optional[str] = None,
    model: Optional[str] = None,
    body: Optional[str] = None,
) -> InferenceError:
    """Map an upstream HTTP status to the taxonomy."""
    details: dict[str, Any] = {"status_code": status_code}
    if body:
        details["body"] = body[:500]
    kwargs = {"backend": backend, "model": model}

    lowered = (body or "").lower()
    if status_code in (401, 403):
        return AuthenticationError(message, details, **kwargs)
    if status_code == 404:
        return ModelNotFoundError(message, details, **kwargs)
    if status_code in (408, 504):
        return InferenceTimeoutError(message, details, **kwargs)
    if status_code == 429:
        if "quota" in lowered:
            return QuotaExceededError(message, details, **kwargs)
        return RateLimitError(message, details, **kwargs)
    if status_code == 402:
        return QuotaExceededError(message, details, **kwargs)
    if 400 <= status_code < 500:
        if any(marker in lowered for marker in CONTENT_FILTER_MARKERS):
            return ContentFilterError(message, details, **kwargs)
        return InvalidRequestError(message, details, **kwargs)
    if status_code >= 500:
        return ProviderUnavailableError(message, details, **kwargs)
    return UnknownUpstreamError(message, details, **kwargs)


def to_inference_error(
    exc: BaseException,
    *,
    backend: Optional[str] = None,
    model: Optional[str] = None,
) -> InferenceError:
    """
    Classify any exception into the taxonomy.

    Already-classified errors pass through (backend/model filled in if
    missing). httpx errors are classified structurally; anything else falls
    back to message heuristics, and finally to a retryable UnknownUpstreamError.
    """
    if isinstance(exc, InferenceError):
        exc.backend = exc.backend or backend
        exc.model = exc.model or model
        return exc

    kwargs = {"backend": backend, "model": model}
    message = str(exc) or exc.__class__.__name__
    details = {"exception_type": exc.__class__.__name__}

    if isinstance(exc, httpx.TimeoutException):
        return InferenceTimeoutError(f"Request timed out: {message}", details, **kwargs)
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = None
        return classify_http_status(
            response.status_code,
            f"HTTP {response.status_code} from upstream",
            body=body,
            **kwargs,
        )
    if isinstance(exc, httpx.TransportError):
        return ProviderUnavailableError(f"Transport error: {message}", details, **kwargs)
    if isinstance(exc, TimeoutError):
        return InferenceTimeoutError(f"Request timed out: {message}", details, **kwargs)

    lowered = message.lower()
    for fragments, error_cls in _MESSAGE_HEURISTICS:
        if any(fragment in lowered for fragment in fragments):
            return error_cls(message, details, **kwargs)

    return UnknownUpstreamError(message, details, **kwargs)


def is_retryable(exc: BaseException) -> bool:
    return to_inference_error(exc).retryable
