"""
tests/test_benchmark_classifier.py

Pytest unit tests for BenchmarkClassifier, the focus list and rule loading.
"""

from __future__ import annotations

import json
import math
from pathlib import Path

import pytest

from app.domain.marketing_fact import Metrics
from kpi.benchmarks import (
    DEFAULT_LADDERS,
    BenchmarkClassifier,
    Tier,
    UnknownMetricError,
    focus_list,
    ladders_from_rules,
    load_benchmark_rules,
    worst_tier,
)


@pytest.fixture()
def classifier() -> BenchmarkClassifier:
    return BenchmarkClassifier()


class TestClassify:
    def test_higher_is_better_boundaries_are_inclusive(self, classifier: BenchmarkClassifier) -> None:
        assert classifier.classify("ctr", 0.015) is Tier.EXCELLENT
        assert classifier.classify("ctr", 0.0149999) is Tier.GOOD
        assert classifier.classify("ctr", 0.010) is Tier.GOOD
        assert classifier.classify("ctr", 0.007) is Tier.FAIR
        assert classifier.classify("ctr", 0.0069) is Tier.RISKY

    def test_lower_is_better_boundaries_are_inclusive(self, classifier: BenchmarkClassifier) -> None:
        assert classifier.classify("cpl", 150.0) is Tier.EXCELLENT
        assert classifier.classify("cpl", 150.01) is Tier.GOOD
        assert classifier.classify("cpl", 600.0) is Tier.FAIR
        assert classifier.classify("cpl", 600.5) is Tier.RISKY

    def test_zero_cost_is_excellent(self, classifier: BenchmarkClassifier) -> None:
        assert classifier.classify("cpa", 0.0) is Tier.EXCELLENT

    def test_non_finite_value_is_risky(self, classifier: BenchmarkClassifier) -> None:
        assert classifier.classify("roas", math.nan) is Tier.RISKY

    def test_unknown_metric_raises(self, classifier: BenchmarkClassifier) -> None:
        with pytest.raises(UnknownMetricError):
            classifier.classify("book_rate", 0.5)

    def test_every_value_lands_in_one_tier(self, classifier: BenchmarkClassifier) -> None:
        for metric in DEFAULT_LADDERS:
            for value in (0.0, 0.01, 1.0, 100.0, 1e9):
                assert classifier.classify(metric, value) in set(Tier)


class TestFocusList:
    def test_splits_fair_and_risky(self, classifier: BenchmarkClassifier) -> None:
        metrics = Metrics(ctr=0.008, cpc=10.0, cpl=1000.0, roas=5.0, mer=5.0, cpa=1.0)
        focus = classifier.focus_list(metrics)

        assert [entry.metric for entry in focus.fair] == ["ctr"]
        assert "cpl" in [entry.metric for entry in focus.risky]
        assert sum(focus.counts.values()) == len(DEFAULT_LADDERS)
        assert set(focus.counts) == {"Excellent", "Good", "Fair", "Risky"}

    def test_empty_focus_when_all_good(self) -> None:
        focus = focus_list([])
        assert focus.risky == ()
        assert focus.fair == ()
        assert focus.counts == {"Excellent": 0, "Good": 0, "Fair": 0, "Risky": 0}

    def test_benchmark_table_has_labels_and_order(self, classifier: BenchmarkClassifier) -> None:
        table = classifier.benchmark_table(Metrics())
        assert table[0].metric == "ctr"
        assert table[0].label == "Click-Through Rate (CTR)"
        assert "book_rate" not in [entry.metric for entry in table]


def test_worst_tier() -> None:
    assert worst_tier([Tier.GOOD, Tier.FAIR, Tier.EXCELLENT]) is Tier.FAIR
    assert worst_tier([]) is None


class TestRules:
    def test_thresholds_override_defaults(self) -> None:
        ladders = ladders_from_rules({"thresholds": {"ctr": {"excellent": 0.02}}})
        assert ladders["ctr"].excellent == 0.02
        assert ladders["ctr"].good == DEFAULT_LADDERS["ctr"].good
        assert BenchmarkClassifier(ladders).classify("ctr", 0.015) is Tier.GOOD

    def test_new_metric_needs_complete_ladder(self) -> None:
        ladders = ladders_from_rules(
            {
                "thresholds": {
                    "book_rate": {"direction": "higher", "excellent": 0.6, "good": 0.5, "fair": 0.4},
                    "ltv": {"direction": "higher", "excellent": 1},
                }
            }
        )
        assert "book_rate" in ladders
        assert "ltv" not in ladders

    def test_bad_direction_is_ignored(self) -> None:
        ladders = ladders_from_rules({"thresholds": {"ctr": {"direction": "sideways"}}})
        assert ladders["ctr"] == DEFAULT_LADDERS["ctr"]

    def test_load_rules_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"thresholds": {"mer": {"fair": 1.5}}}), encoding="utf-8")
        assert load_benchmark_rules(path) == {"thresholds": {"mer": {"fair": 1.5}}}

    def test_missing_or_malformed_file_yields_empty_rules(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert load_benchmark_rules(tmp_path / "missing.json") == {}
        assert load_benchmark_rules(bad) == {}

    def test_shipped_rules_match_defaults(self) -> None:
        rules = load_benchmark_rules(Path(__file__).resolve().parents[1] / "config" / "benchmarks.json")
        assert ladders_from_rules(rules) == DEFAULT_LADDERS
