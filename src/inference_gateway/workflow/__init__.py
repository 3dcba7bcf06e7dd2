"""
Workflow orchestration over the gateway, retrieval and compression.
"""

from inference_gateway.workflow.collaborators import Compressor, Retriever, ToolRegistry
from inference_gateway.workflow.orchestrator import WorkflowOrchestrator, parse_steps

__all__ = ["Compressor", "Retriever", "ToolRegistry", "WorkflowOrchestrator", "parse_steps"]
