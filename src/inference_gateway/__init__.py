"""
Inference Gateway: routes generic text-generation requests to heterogeneous
language-model backends, chooses models per scenario, retries transient
failures, and records usage, performance and audit telemetry.
"""

__version__ = "0.1.0"
