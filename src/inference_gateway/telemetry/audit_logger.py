"""
Audit logger for inference calls.

Every call and every final failure is emitted as a structlog event and kept
in a bounded in-memory window that ``query_logs`` filters. Stored content is
truncated and credential-like substrings are masked first.
"""

import re
import threading
from collections import deque
from datetime import datetime
from typing import Optional

import structlog

from inference_gateway.llm.exceptions import InferenceError
from inference_gateway.models.llm_models import InferenceRequest, InferenceResponse
from inference_gateway.models.telemetry import AuditLogEntry

logger = structlog.get_logger(__name__)

_SECRET_PATTERNS = [
    re.compile(r"sk-[A-Za-z0-9_\-]{16,}"),
    re.compile(r"AIza[0-9A-Za-z_\-]{30,}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]{16,}"),
]


def sanitize_content(content: Optional[str], max_chars: int = 500) -> Optional[str]:
    """Mask credential-like tokens, then truncate to ``max_chars``."""
    if content is None:
        return None
    for pattern in _SECRET_PATTERNS:
        content = pattern.sub("[REDACTED]", content)
    if len(content) > max_chars:
        return content[:max_chars] + "...[truncated]"
    return content


class AuditLogger:
    def __init__(self, max_entries: int = 10000, content_max_chars: int = 500):
        self.content_max_chars = content_max_chars
        self._entries: deque[AuditLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def _store(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    def log_call(
        self,
        request: InferenceRequest,
        response: InferenceResponse,
        scenario: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            event="call",
            model=response.model,
            backend=response.backend,
            scenario=scenario,
            user_id=user_id,
            request_content=sanitize_content(request.prompt, self.content_max_chars),
            response_content=sanitize_content(response.content, self.content_max_chars),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=response.latency_ms,
            success=True,
            details={"cost": response.cost, "finish_reason": response.finish_reason},
        )
        logger.info(
            "Inference call",
            model=entry.model,
            backend=entry.backend,
            scenario=scenario,
            user_id=user_id,
            input_tokens=entry.input_tokens,
            output_tokens=entry.output_tokens,
            latency_ms=entry.latency_ms,
            cost=response.cost,
        )
        return self._store(entry)

    def log_error(
        self,
        error: InferenceError,
        model: str,
        backend: str,
        scenario: Optional[str] = None,
        user_id: Optional[str] = None,
        request: Optional[InferenceRequest] = None,
        latency_ms: int = 0,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            event="error",
            model=model,
            backend=backend,
            scenario=scenario,
            user_id=user_id,
            request_content=sanitize_content(request.prompt, self.content_max_chars) if request else None,
            latency_ms=latency_ms,
            success=False,
            error_code=error.code.value,
            error_message=error.message,
            details={"attempts": error.attempts, "retryable": error.retryable},
        )
        logger.error(
            "Inference call failed",
            model=model,
            backend=backend,
            scenario=scenario,
            user_id=user_id,
            error_code=entry.error_code,
            error=error.message,
            attempts=error.attempts,
            latency_ms=latency_ms,
        )
        return self._store(entry)

    def query_logs(
        self,
        model: Optional[str] = None,
        backend: Optional[str] = None,
        scenario: Optional[str] = None,
        user_id: Optional[str] = None,
        success: Optional[bool] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """Newest first."""
        with self._lock:
            entries = list(self._entries)
        matched = [
            e for e in reversed(entries)
            if (model is None or e.model == model)
            and (backend is None or e.backend == backend)
            and (scenario is None or e.scenario == scenario)
            and (user_id is None or e.user_id == user_id)
            and (success is None or e.success == success)
            and (start is None or e.timestamp >= start)
            and (end is None or e.timestamp <= end)
        ]
        return matched[:limit]
