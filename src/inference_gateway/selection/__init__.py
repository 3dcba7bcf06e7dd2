"""
Selection policy engine.

- strategies.py: cost, quality, latency and balanced strategies
- selector.py: scenario -> strategy table, degraded mode, decision recording
- decision_log.py: bounded append-only SelectionDecision log
"""

from inference_gateway.selection.decision_log import BoundedDecisionLog, DecisionLog
from inference_gateway.selection.selector import DEFAULT_SCENARIO, ModelSelector

__all__ = ["BoundedDecisionLog", "DecisionLog", "DEFAULT_SCENARIO", "ModelSelector"]
