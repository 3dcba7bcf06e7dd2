"""
Retry executor with capped exponential backoff.

Retryable errors (timeouts, 5xx, transport failures, unknown upstream errors)
sleep ``min(initial_delay * multiplier**(attempt-1), max_delay)`` between
attempts; non-retryable errors propagate on first occurrence.

Usage:
    >>> executor = RetryExecutor(RetryPolicy.from_settings(settings))
    >>> response = await executor.execute(lambda: adapter.call(request, model))
"""

from inference_gateway.retry.executor import RetryExecutor, RetryPolicy

__all__ = ["RetryExecutor", "RetryPolicy"]
