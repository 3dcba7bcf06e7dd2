"""
Decision log interface and a bounded in-memory implementation.

The selector receives a log instance instead of owning module-level state,
so a deployment can swap in an externally persisted log.
"""

import threading
from collections import deque
from typing import Protocol

from inference_gateway.models.selection import SelectionDecision


class DecisionLog(Protocol):
    """Append-only store of selection decisions."""

    def append(self, decision: SelectionDecision) -> None:
        ...

    def recent(self, limit: int = 100) -> list[SelectionDecision]:
        """Most recent ``limit`` decisions, oldest first."""
        ...

    def all(self) -> list[SelectionDecision]:
        ...

    def clear(self) -> None:
        ...


class BoundedDecisionLog:
    """
    Ring buffer holding the last ``capacity`` decisions.

    Guarded by a lock: parallel workflow steps and concurrent requests append
    from different tasks, and a sync reporter thread may read.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: deque[SelectionDecision] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, decision: SelectionDecision) -> None:
        with self._lock:
            self._entries.append(decision)

    def recent(self, limit: int = 100) -> list[SelectionDecision]:
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:] if limit > 0 else []

    def all(self) -> list[SelectionDecision]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
