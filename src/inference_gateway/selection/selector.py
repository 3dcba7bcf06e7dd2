"""
Model selector: maps a scenario to a strategy and picks one model from a
catalog snapshot, logging every decision.

The scenario table is plain configuration. It starts from DEFAULT_SCENARIO_TABLE,
is overlaid with SCENARIO_STRATEGY_OVERRIDES at startup, and can be changed
afterwards only through ``set_strategy``.
"""

from collections import Counter
from typing import Mapping, Optional

import structlog

from inference_gateway.config import Settings
from inference_gateway.llm.exceptions import NoModelsAvailableError
from inference_gateway.models.enums import StrategyName
from inference_gateway.models.llm_models import ModelDescriptor
from inference_gateway.models.selection import (
    CallerContext,
    SelectionConstraints,
    SelectionDecision,
)
from inference_gateway.selection.decision_log import BoundedDecisionLog, DecisionLog
from inference_gateway.selection.strategies import DEFAULT_STRATEGIES, SelectionStrategy
from inference_gateway.telemetry.metrics import selection_decisions_total, selection_degraded_total

logger = structlog.get_logger(__name__)

DEFAULT_SCENARIO = "general"

DEFAULT_SCENARIO_TABLE: dict[str, StrategyName] = {
    # Structured extraction: cheap is good enough
    "resume-parsing": StrategyName.COST,
    "job-description-parsing": StrategyName.COST,
    "agent-star-extraction": StrategyName.COST,
    "agent-keyword-matching": StrategyName.COST,
    "agent-context-analysis": StrategyName.COST,
    "agent-context-compression": StrategyName.COST,
    "agent-rag-retrieval": StrategyName.COST,
    # User-facing prose
    "resume-optimization": StrategyName.QUALITY,
    "agent-introduction-generation": StrategyName.QUALITY,
    "agent-custom-question-generation": StrategyName.QUALITY,
    "agent-interview-initialization": StrategyName.QUALITY,
    "agent-interview-conclusion": StrategyName.QUALITY,
    # Interactive turns
    "interview-question-generation": StrategyName.LATENCY,
    "agent-response-processing": StrategyName.LATENCY,
    "match-score-calculation": StrategyName.BALANCED,
    "agent-question-prioritization": StrategyName.BALANCED,
    "agent-response-analysis": StrategyName.BALANCED,
    DEFAULT_SCENARIO: StrategyName.BALANCED,
}


class ModelSelector:
    """
    Stateless per call apart from the injected decision log.

    Args:
        decision_log: Where decisions are appended
        scenario_table: Initial scenario -> strategy mapping
        strategies: Strategy implementations by name
    """

    def __init__(
        self,
        decision_log: Optional[DecisionLog] = None,
        scenario_table: Optional[Mapping[str, StrategyName | str]] = None,
        strategies: Optional[Mapping[StrategyName, SelectionStrategy]] = None,
    ):
        self.decision_log: DecisionLog = decision_log if decision_log is not None else BoundedDecisionLog()
        self._strategies = dict(strategies or DEFAULT_STRATEGIES)
        table = scenario_table if scenario_table is not None else DEFAULT_SCENARIO_TABLE
        self._table: dict[str, StrategyName] = {k: StrategyName(v) for k, v in table.items()}
        self._table.setdefault(DEFAULT_SCENARIO, StrategyName.BALANCED)

    @classmethod
    def from_settings(cls, settings: Settings, decision_log: Optional[DecisionLog] = None) -> "ModelSelector":
        table: dict[str, StrategyName | str] = dict(DEFAULT_SCENARIO_TABLE)
        table.update(settings.SCENARIO_STRATEGY_OVERRIDES)
        return cls(
            decision_log=decision_log or BoundedDecisionLog(settings.SELECTION_LOG_SIZE),
            scenario_table=table,
        )

    # === Scenario table ===

    def set_strategy(self, scenario: str, strategy: StrategyName | str) -> None:
        """Override (or add) the strategy used for ``scenario``."""
        resolved = StrategyName(strategy)
        previous = self._table.get(scenario)
        self._table[scenario] = resolved
        logger.info(
            "Scenario strategy overridden",
            scenario=scenario,
            previous=previous.value if previous else None,
            strategy=resolved.value,
        )

    def get_strategy(self, scenario: str) -> StrategyName:
        """Strategy for ``scenario``; unknown scenarios use the general one."""
        strategy = self._table.get(scenario)
        if strategy is None:
            logger.warning(
                "Unknown scenario, using general strategy",
                scenario=scenario,
                fallback=self._table[DEFAULT_SCENARIO].value,
            )
            return self._table[DEFAULT_SCENARIO]
        return strategy

    def registered_scenarios(self) -> list[str]:
        return list(self._table)

    # === Selection ===

    def select(
        self,
        models: list[ModelDescriptor],
        scenario: str = DEFAULT_SCENARIO,
        context: Optional[CallerContext] = None,
        constraints: Optional[SelectionConstraints] = None,
    ) -> ModelDescriptor:
        """
        Pick one model for ``scenario``.

        Only available models are considered. When none is available but the
        list is not empty, the first entry is returned in degraded mode and
        the decision records it.

        Raises:
            NoModelsAvailableError: ``models`` is empty
        """
        if not models:
            logger.error("Selection with empty catalog", scenario=scenario)
            raise NoModelsAvailableError(
                "No models in catalog",
                details={"scenario": scenario},
            )

        strategy_name = self.get_strategy(scenario)
        available = [m for m in models if m.is_available]

        if available:
            chosen = self._strategies[strategy_name].select(available, constraints)
            degraded = False
        else:
            chosen = models[0]
            degraded = True
            selection_degraded_total.labels(scenario=scenario).inc()
            logger.warning(
                "No available models, selecting in degraded mode",
                scenario=scenario,
                model=chosen.key,
                catalog_size=len(models),
            )

        decision = SelectionDecision(
            scenario=scenario,
            selected_model=chosen.name,
            selected_backend=chosen.backend,
            strategy_used=strategy_name,
            available_models_count=len(available),
            model_cost=chosen.unit_cost,
            model_latency_ms=chosen.average_latency_ms,
            model_success_rate=chosen.success_rate,
            degraded=degraded,
            context=context or CallerContext(),
        )
        self.decision_log.append(decision)
        selection_decisions_total.labels(
            scenario=scenario, strategy=strategy_name.value, model=chosen.key
        ).inc()

        logger.info(
            "Model selected",
            scenario=scenario,
            strategy=strategy_name.value,
            model=chosen.key,
            candidates=len(available),
            degraded=degraded,
        )
        return chosen

    # === Decision log views ===

    def get_selection_log(self, limit: int = 100) -> list[SelectionDecision]:
        return self.decision_log.recent(limit)

    def clear_selection_log(self) -> None:
        self.decision_log.clear()
        logger.info("Selection log cleared")

    def get_selection_statistics(self) -> dict:
        """Counts per scenario, model key and strategy over the retained window."""
        decisions = self.decision_log.all()
        return {
            "total_selections": len(decisions),
            "degraded_selections": sum(1 for d in decisions if d.degraded),
            "by_scenario": dict(Counter(d.scenario for d in decisions)),
            "by_model": dict(Counter(d.model_key for d in decisions)),
            "by_strategy": dict(Counter(d.strategy_used.value for d in decisions)),
        }
