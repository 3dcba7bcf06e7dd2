"""
Selection strategies.

Each strategy picks exactly one model from a non-empty candidate list.
Strategies are pure: same candidates in, same model out. Ties resolve to
the earliest candidate in list order, which keeps a pick stable within one
catalog snapshot.
"""

from typing import Optional, Protocol

from inference_gateway.models.enums import StrategyName
from inference_gateway.models.llm_models import ModelDescriptor
from inference_gateway.models.selection import SelectionConstraints

# Lowest to highest.
QUALITY_RANKING: tuple[str, ...] = (
    "deepseek-chat",
    "qwen-max",
    "claude-3-opus",
    "gpt-3.5-turbo",
    "gpt-4-turbo",
    "gpt-4o",
    "gpt-4",
)

BALANCED_WEIGHTS = {"cost": 0.4, "latency": 0.3, "reliability": 0.3}


class SelectionStrategy(Protocol):
    name: StrategyName

    def select(
        self,
        candidates: list[ModelDescriptor],
        constraints: Optional[SelectionConstraints] = None,
    ) -> ModelDescriptor:
        ...


def _require_candidates(candidates: list[ModelDescriptor]) -> None:
    if not candidates:
        raise ValueError("No candidates to select from")


class CostOptimizedStrategy:
    """Cheapest by input + output per-token cost; ``max_cost`` is a soft filter."""

    name = StrategyName.COST

    def select(self, candidates, constraints=None):
        _require_candidates(candidates)
        pool = candidates
        if constraints is not None and constraints.max_cost is not None:
            within = [m for m in candidates if m.unit_cost <= constraints.max_cost]
            pool = within or candidates
        return min(pool, key=lambda m: m.unit_cost)


class QualityOptimizedStrategy:
    """
    Walks the ranking from best to worst and returns the first available
    model whose name matches a family: exact, ``family-...`` or ``...-family``,
    case-insensitively. Unranked catalogs get the first candidate.
    """

    name = StrategyName.QUALITY

    def __init__(self, ranking: tuple[str, ...] = QUALITY_RANKING):
        self.ranking = ranking

    @staticmethod
    def matches(model_name: str, family: str) -> bool:
        name = model_name.lower()
        family = family.lower()
        return name == family or name.startswith(family + "-") or name.endswith("-" + family)

    def select(self, candidates, constraints=None):
        _require_candidates(candidates)
        for family in reversed(self.ranking):
            for model in candidates:
                if self.matches(model.name, family):
                    return model
        return candidates[0]


class LatencyOptimizedStrategy:
    """Fastest observed average latency; ``max_latency_ms`` is a soft filter."""

    name = StrategyName.LATENCY

    def select(self, candidates, constraints=None):
        _require_candidates(candidates)
        pool = candidates
        if constraints is not None and constraints.max_latency_ms is not None:
            within = [m for m in candidates if m.average_latency_ms <= constraints.max_latency_ms]
            pool = within or candidates
        return min(pool, key=lambda m: m.average_latency_ms)


class BalancedStrategy:
    """
    score = 0.4 * cost/max_cost + 0.3 * latency/max_latency + 0.3 * (1 - success_rate)

    Each maximum is taken over the candidate set and floored at 1 when it is
    zero. Lowest score wins. A strictly dominated candidate always scores
    higher than its dominator, so it is never chosen.
    """

    name = StrategyName.BALANCED

    def score(self, model: ModelDescriptor, max_cost: float, max_latency: float) -> float:
        return (
            BALANCED_WEIGHTS["cost"] * (model.unit_cost / max_cost)
            + BALANCED_WEIGHTS["latency"] * (model.average_latency_ms / max_latency)
            + BALANCED_WEIGHTS["reliability"] * (1 - model.success_rate)
        )

    def select(self, candidates, constraints=None):
        _require_candidates(candidates)
        max_cost = max(m.unit_cost for m in candidates) or 1
        max_latency = max(m.average_latency_ms for m in candidates) or 1
        return min(candidates, key=lambda m: self.score(m, max_cost, max_latency))


DEFAULT_STRATEGIES: dict[StrategyName, SelectionStrategy] = {
    StrategyName.COST: CostOptimizedStrategy(),
    StrategyName.QUALITY: QualityOptimizedStrategy(),
    StrategyName.LATENCY: LatencyOptimizedStrategy(),
    StrategyName.BALANCED: BalancedStrategy(),
}
