"""
Collaborator interfaces used by workflow steps.

Retrieval and compression are external services; the orchestrator only knows
these protocols. Tools are registered by name in a ToolRegistry.
"""

from typing import Any, Awaitable, Callable, Protocol

import structlog

from inference_gateway.llm.exceptions import InvalidRequestError
from inference_gateway.models.workflow_models import (
    ChatMessage,
    CompressionResult,
    RetrievedDocument,
)

logger = structlog.get_logger(__name__)

ToolHandler = Callable[..., Awaitable[Any]]


class Retriever(Protocol):
    async def retrieve(self, query: str, k: int) -> list[RetrievedDocument]:
        ...


class Compressor(Protocol):
    async def compress(self, messages: list[ChatMessage], max_tokens: int) -> CompressionResult:
        ...


class ToolRegistry:
    """Name -> async callable dispatch table for tool-use steps."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        if name in self._tools:
            logger.warning("Replacing registered tool", tool=name)
        self._tools[name] = handler

    def names(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """
        Raises:
            InvalidRequestError: no tool registered under ``name``
        """
        handler = self._tools.get(name)
        if handler is None:
            raise InvalidRequestError(
                f"Unknown tool: {name}",
                details={"tool": name, "available": self.names()},
            )
        return await handler(**arguments)
