"""
Unit tests for ModelSelector: scenario table, degraded mode and the decision log.
"""

import pytest

from inference_gateway.llm.exceptions import NoModelsAvailableError
from inference_gateway.models.enums import StrategyName
from inference_gateway.models.selection import CallerContext
from inference_gateway.selection.decision_log import BoundedDecisionLog
from inference_gateway.selection.selector import DEFAULT_SCENARIO_TABLE, ModelSelector


@pytest.fixture
def catalog(create_descriptor):
    return [
        create_descriptor("gpt-4", backend="openai", cost_in=0.03, cost_out=0.06, latency=4000),
        create_descriptor("gpt-3.5-turbo", backend="openai", cost_in=0.0005, cost_out=0.0015, latency=800),
        create_descriptor("llama3", backend="ollama", latency=2000, success_rate=0.9),
    ]


def test_cost_scenario_picks_cheapest(catalog):
    selector = ModelSelector()

    assert selector.select(catalog, "resume-parsing").key == "ollama:llama3"


def test_quality_scenario_picks_best_ranked(catalog):
    selector = ModelSelector()

    assert selector.select(catalog, "resume-optimization").key == "openai:gpt-4"


def test_latency_scenario_picks_fastest(catalog):
    selector = ModelSelector()

    assert selector.select(catalog, "interview-question-generation").key == "openai:gpt-3.5-turbo"


def test_unknown_scenario_uses_general_strategy(catalog):
    selector = ModelSelector()

    assert selector.get_strategy("made-up-scenario") is StrategyName.BALANCED
    selector.select(catalog, "made-up-scenario")

    assert selector.get_selection_log()[-1].strategy_used is StrategyName.BALANCED


def test_unavailable_models_are_skipped(create_descriptor):
    down = create_descriptor("cheap", cost_in=0.0, available=False)
    up = create_descriptor("pricey", cost_in=0.01)

    chosen = ModelSelector().select([down, up], "resume-parsing")

    assert chosen is up


def test_degraded_mode_returns_first_and_is_logged(create_descriptor):
    first = create_descriptor("first", available=False)
    second = create_descriptor("second", cost_in=0.0, available=False)
    selector = ModelSelector()

    chosen = selector.select([first, second], "resume-parsing")

    assert chosen is first
    decision = selector.get_selection_log()[-1]
    assert decision.degraded is True
    assert decision.available_models_count == 0
    assert selector.get_selection_statistics()["degraded_selections"] == 1


def test_empty_catalog_raises_and_logs_nothing():
    selector = ModelSelector()

    with pytest.raises(NoModelsAvailableError):
        selector.select([], "general")

    assert selector.get_selection_log() == []


def test_decision_records_snapshot_and_context(catalog):
    selector = ModelSelector()
    context = CallerContext(user_id="u-1", agent_type="interviewer", workflow_step="s-2")

    chosen = selector.select(catalog, "interview-question-generation", context)

    decision = selector.get_selection_log()[-1]
    assert decision.model_key == chosen.key
    assert decision.model_cost == pytest.approx(chosen.unit_cost)
    assert decision.model_latency_ms == chosen.average_latency_ms
    assert decision.context == context
    assert decision.available_models_count == 3


def test_context_never_changes_the_pick(catalog):
    selector = ModelSelector()

    plain = selector.select(catalog, "general")
    with_context = selector.select(catalog, "general", CallerContext(user_id="someone"))

    assert plain is with_context


def test_set_strategy_overrides_table(catalog):
    selector = ModelSelector()
    selector.set_strategy("resume-parsing", "quality")

    assert selector.get_strategy("resume-parsing") is StrategyName.QUALITY
    assert selector.select(catalog, "resume-parsing").key == "openai:gpt-4"


def test_set_strategy_rejects_unknown_strategy():
    with pytest.raises(ValueError):
        ModelSelector().set_strategy("general", "fastest-please")


def test_from_settings_applies_overrides(test_settings):
    test_settings.SCENARIO_STRATEGY_OVERRIDES = {"resume-parsing": "latency", "custom": "cost"}
    test_settings.SELECTION_LOG_SIZE = 5

    selector = ModelSelector.from_settings(test_settings)

    assert selector.get_strategy("resume-parsing") is StrategyName.LATENCY
    assert selector.get_strategy("custom") is StrategyName.COST
    assert "custom" in selector.registered_scenarios()
    assert set(DEFAULT_SCENARIO_TABLE) <= set(selector.registered_scenarios())
    assert selector.decision_log.capacity == 5


def test_decision_log_is_bounded(catalog):
    selector = ModelSelector(decision_log=BoundedDecisionLog(capacity=3))

    for _ in range(5):
        selector.select(catalog, "general")

    assert len(selector.get_selection_log(limit=100)) == 3


def test_statistics_and_clear(catalog):
    selector = ModelSelector()
    selector.select(catalog, "resume-parsing")
    selector.select(catalog, "resume-parsing")
    selector.select(catalog, "resume-optimization")

    stats = selector.get_selection_statistics()

    assert stats["total_selections"] == 3
    assert stats["by_scenario"] == {"resume-parsing": 2, "resume-optimization": 1}
    assert stats["by_model"] == {"ollama:llama3": 2, "openai:gpt-4": 1}
    assert stats["by_strategy"] == {"cost": 2, "quality": 1}

    selector.clear_selection_log()
    assert selector.get_selection_statistics()["total_selections"] == 0


def test_recent_returns_newest_window(catalog):
    log = BoundedDecisionLog(capacity=10)
    selector = ModelSelector(decision_log=log)
    for scenario in ("resume-parsing", "resume-optimization", "interview-question-generation"):
        selector.select(catalog, scenario)

    recent = selector.get_selection_log(limit=2)

    assert [d.scenario for d in recent] == ["resume-optimization", "interview-question-generation"]
