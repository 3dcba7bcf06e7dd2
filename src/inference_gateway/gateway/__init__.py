"""
Inference Gateway: model catalog, request dispatch and telemetry fan-out.
"""

from inference_gateway.gateway.catalog import ModelCatalog
from inference_gateway.gateway.service import InferenceGateway

__all__ = ["ModelCatalog", "InferenceGateway"]
