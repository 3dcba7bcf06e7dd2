"""
Retry executor: bounded exponential backoff around one async unit of work.

Retry Policy:
    - Every failure is classified through ``to_inference_error``
    - Non-retryable errors (validation, auth, 4xx) propagate on first occurrence
    - Retryable errors (timeouts, 5xx, transport, unknown) sleep
      min(initial_delay * multiplier^(attempt-1), max_delay) and try again
    - After ``max_attempts`` the last error propagates with ``attempts`` set

Usage:
    executor = RetryExecutor(RetryPolicy.from_settings(settings))
    response = await executor.execute(lambda: adapter.call(request, model))
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from inference_gateway.config import Settings
from inference_gateway.llm.exceptions import InferenceError, to_inference_error
from inference_gateway.telemetry.metrics import inference_retries_total

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff configuration. Delays are in seconds.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the second attempt
        max_delay: Upper bound for any single delay
        multiplier: Growth factor between consecutive delays
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after failed ``attempt`` (1-indexed)."""
        return min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)


class RetryExecutor:
    """
    Runs an operation under a RetryPolicy.

    ``sleep`` is injectable so tests can observe delays without waiting.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        backend: Optional[str] = None,
        model: Optional[str] = None,
    ) -> T:
        """
        Execute ``operation`` until it succeeds, fails non-retryably, or
        attempts run out.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            backend: Backend name attached to classified errors and logs
            model: Model name attached to classified errors and logs

        Raises:
            InferenceError: classified last error, ``attempts`` set
        """
        last_error: Optional[InferenceError] = None
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                result = await operation()
                if attempt > 1:
                    logger.info(
                        "Operation succeeded after retry",
                        backend=backend,
                        model=model,
                        attempt=attempt,
                    )
                return result
            except Exception as e:
                error = to_inference_error(e, backend=backend, model=model)
                error.attempts = attempt
                last_error = error

                if not error.retryable:
                    logger.warning(
                        "Non-retryable error, giving up",
                        backend=backend,
                        model=model,
                        attempt=attempt,
                        error_code=error.code.value,
                        error=error.message,
                    )
                    if error is e:
                        raise
                    raise error from e

                if attempt >= self.policy.max_attempts:
                    logger.error(
                        "Retry attempts exhausted",
                        backend=backend,
                        model=model,
                        attempts=attempt,
                        error_code=error.code.value,
                        error=error.message,
                    )
                    if error is e:
                        raise
                    raise error from e

                delay = self.policy.delay_for(attempt)
                inference_retries_total.labels(error_code=error.code.value).inc()
                logger.info(
                    "Retryable error, backing off",
                    backend=backend,
                    model=model,
                    attempt=attempt,
                    max_attempts=self.policy.max_attempts,
                    delay_seconds=delay,
                    error_code=error.code.value,
                )
                await self._sleep(delay)

        # max_attempts >= 1 guarantees the loop either returned or raised
        raise last_error  # type: ignore[misc]
