"""
Unit tests for the four selection strategies.
"""

import pytest

from inference_gateway.models.selection import SelectionConstraints
from inference_gateway.selection.strategies import (
    BalancedStrategy,
    CostOptimizedStrategy,
    LatencyOptimizedStrategy,
    QualityOptimizedStrategy,
)


class TestCostOptimized:
    def test_picks_cheapest(self, create_descriptor):
        a = create_descriptor("a", cost_in=0.0, cost_out=0.0)
        b = create_descriptor("b", cost_in=0.001, cost_out=0.002)
        c = create_descriptor("c", cost_in=0.03, cost_out=0.06)

        assert CostOptimizedStrategy().select([c, b, a]) is a

    def test_max_cost_filters(self, create_descriptor):
        cheap_slow = create_descriptor("cheap", cost_in=0.001, latency=9000)
        pricey = create_descriptor("pricey", cost_in=0.05)

        chosen = CostOptimizedStrategy().select([pricey, cheap_slow], SelectionConstraints(max_cost=0.01))

        assert chosen is cheap_slow

    def test_unsatisfiable_max_cost_falls_back_to_all(self, create_descriptor):
        a = create_descriptor("a", cost_in=0.02)
        b = create_descriptor("b", cost_in=0.01)

        assert CostOptimizedStrategy().select([a, b], SelectionConstraints(max_cost=0.0001)) is b

    def test_tie_resolves_to_first(self, create_descriptor):
        a = create_descriptor("a", cost_in=0.01)
        b = create_descriptor("b", cost_in=0.01)

        assert CostOptimizedStrategy().select([a, b]) is a
        assert CostOptimizedStrategy().select([b, a]) is b


class TestQualityOptimized:
    def test_prefers_highest_ranked(self, create_descriptor):
        turbo = create_descriptor("gpt-3.5-turbo", backend="openai")
        gpt4 = create_descriptor("gpt-4", backend="openai")

        assert QualityOptimizedStrategy().select([turbo, gpt4]) is gpt4

    def test_match_is_case_insensitive_prefix_or_suffix(self):
        strategy = QualityOptimizedStrategy()

        assert strategy.matches("GPT-4", "gpt-4")
        assert strategy.matches("gpt-4-0613", "gpt-4")
        assert strategy.matches("azure-gpt-4", "gpt-4")
        assert not strategy.matches("gpt-4o", "gpt-4")

    def test_unranked_catalog_returns_first_candidate(self, create_descriptor):
        first = create_descriptor("llama3")
        second = create_descriptor("mistral")

        assert QualityOptimizedStrategy().select([first, second]) is first

    def test_custom_ranking(self, create_descriptor):
        llama = create_descriptor("llama3")
        mistral = create_descriptor("mistral")

        strategy = QualityOptimizedStrategy(ranking=("llama3", "mistral"))

        assert strategy.select([llama, mistral]) is mistral


class TestLatencyOptimized:
    def test_picks_fastest(self, create_descriptor):
        slow = create_descriptor("slow", latency=5000)
        fast = create_descriptor("fast", latency=300)

        assert LatencyOptimizedStrategy().select([slow, fast]) is fast

    def test_unsatisfiable_max_latency_falls_back_to_fastest(self, create_descriptor):
        slow = create_descriptor("slow", latency=5000)
        slower = create_descriptor("slower", latency=8000)

        chosen = LatencyOptimizedStrategy().select([slower, slow], SelectionConstraints(max_latency_ms=100))

        assert chosen is slow


class TestBalanced:
    def test_never_picks_strictly_dominated_candidate(self, create_descriptor):
        good = create_descriptor("good", cost_in=0.001, latency=500, success_rate=0.99)
        dominated = create_descriptor("bad", cost_in=0.002, latency=900, success_rate=0.90)

        assert BalancedStrategy().select([dominated, good]) is good

    def test_all_zero_cost_and_latency_does_not_divide_by_zero(self, create_descriptor):
        a = create_descriptor("a", latency=0, success_rate=0.9)
        b = create_descriptor("b", latency=0, success_rate=1.0)

        assert BalancedStrategy().select([a, b]) is b

    def test_score_weights(self, create_descriptor):
        model = create_descriptor("m", cost_in=0.5, cost_out=0.5, latency=500, success_rate=0.5)

        score = BalancedStrategy().score(model, max_cost=2.0, max_latency=1000)

        assert score == pytest.approx(0.4 * 0.5 + 0.3 * 0.5 + 0.3 * 0.5)


@pytest.mark.parametrize(
    "strategy",
    [CostOptimizedStrategy(), QualityOptimizedStrategy(), LatencyOptimizedStrategy(), BalancedStrategy()],
)
def test_selection_is_deterministic(strategy, create_descriptor):
    catalog = [
        create_descriptor("gpt-4", backend="openai", cost_in=0.03, latency=4000, success_rate=0.98),
        create_descriptor("deepseek-chat", backend="deepseek", cost_in=0.0001, latency=2500, success_rate=0.95),
        create_descriptor("llama3", latency=1500, success_rate=0.9),
    ]

    picks = {strategy.select(list(catalog)).key for _ in range(10)}

    assert len(picks) == 1


@pytest.mark.parametrize(
    "strategy",
    [CostOptimizedStrategy(), QualityOptimizedStrategy(), LatencyOptimizedStrategy(), BalancedStrategy()],
)
def test_empty_candidates_rejected(strategy):
    with pytest.raises(ValueError):
        strategy.select([])
