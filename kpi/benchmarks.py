"""
kpi/benchmarks.py

Classifies funnel metric values into benchmark tiers.
No metric computation, no I/O beyond reading the rules file, no side effects.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.domain.marketing_fact import Metrics
from kpi.funnel import DEFAULT_FORMULAS, MetricFormula

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    RISKY = "Risky"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK: dict[Tier, int] = {
    Tier.RISKY: 0,
    Tier.FAIR: 1,
    Tier.GOOD: 2,
    Tier.EXCELLENT: 3,
}

HIGHER_IS_BETTER = "higher"
LOWER_IS_BETTER = "lower"


class UnknownMetricError(ValueError):
    """
    Raised when a metric has no benchmark ladder.
    """


@dataclass(frozen=True)
class ThresholdLadder:
    """
    Inclusive cut-offs for Excellent, Good and Fair; anything else is Risky.

    ``direction`` is ``"higher"`` for efficiency rates (value must be >= the
    cut-off) and ``"lower"`` for costs (value must be <= the cut-off).
    """

    direction: str
    excellent: float
    good: float
    fair: float

    def tier_for(self, value: float) -> Tier:
        if not math.isfinite(value):
            return Tier.RISKY
        if self.direction == LOWER_IS_BETTER:
            if value <= self.excellent:
                return Tier.EXCELLENT
            if value <= self.good:
                return Tier.GOOD
            if value <= self.fair:
                return Tier.FAIR
            return Tier.RISKY
        if value >= self.excellent:
            return Tier.EXCELLENT
        if value >= self.good:
            return Tier.GOOD
        if value >= self.fair:
            return Tier.FAIR
        return Tier.RISKY


DEFAULT_LADDERS: dict[str, ThresholdLadder] = {
    "ctr": ThresholdLadder(HIGHER_IS_BETTER, 0.015, 0.010, 0.007),
    "cpc": ThresholdLadder(LOWER_IS_BETTER, 20.0, 40.0, 70.0),
    "lead_conv": ThresholdLadder(HIGHER_IS_BETTER, 0.20, 0.10, 0.05),
    "cpl": ThresholdLadder(LOWER_IS_BETTER, 150.0, 300.0, 600.0),
    "show_rate": ThresholdLadder(HIGHER_IS_BETTER, 0.70, 0.60, 0.50),
    "qual_call_rate": ThresholdLadder(HIGHER_IS_BETTER, 0.20, 0.10, 0.05),
    "close_rate": ThresholdLadder(HIGHER_IS_BETTER, 0.25, 0.15, 0.10),
    "cpa": ThresholdLadder(LOWER_IS_BETTER, 30000.0, 45000.0, 60000.0),
    "roas": ThresholdLadder(HIGHER_IS_BETTER, 4.0, 3.0, 2.0),
    "mer": ThresholdLadder(HIGHER_IS_BETTER, 4.0, 3.0, 2.0),
}

# Benchmark table order shown on the dashboard.
BENCHMARK_ORDER: tuple[str, ...] = (
    "ctr",
    "cpc",
    "lead_conv",
    "cpl",
    "show_rate",
    "qual_call_rate",
    "close_rate",
    "cpa",
    "roas",
    "mer",
)


@dataclass(frozen=True)
class BenchmarkEntry:
    metric: str
    label: str
    unit: str
    value: float
    tier: Tier


@dataclass(frozen=True)
class FocusList:
    """
    Metrics needing attention plus the count of every tier.
    """

    risky: tuple[BenchmarkEntry, ...]
    fair: tuple[BenchmarkEntry, ...]
    counts: dict[str, int]


def load_benchmark_rules(path: Path) -> dict:
    """
    Read the JSON rules file; a missing or malformed file yields ``{}``.
    """
    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}
    except (OSError, ValueError, TypeError):
        logger.warning("Benchmark rules unavailable path=%s; using defaults", path)
        return {}


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _as_float(value: object, default: float) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def ladders_from_rules(rules: Mapping[str, Any]) -> dict[str, ThresholdLadder]:
    """
    Merge the ``thresholds`` section of *rules* over DEFAULT_LADDERS.

    Each entry may set ``direction``, ``excellent``, ``good`` and ``fair``;
    omitted or invalid keys keep their default.
    """
    configured = _as_dict(rules.get("thresholds"))
    ladders: dict[str, ThresholdLadder] = dict(DEFAULT_LADDERS)
    for metric, entry in configured.items():
        entry = _as_dict(entry)
        base = ladders.get(metric)
        direction = entry.get("direction", base.direction if base else None)
        if direction not in (HIGHER_IS_BETTER, LOWER_IS_BETTER):
            logger.warning("Ignoring benchmark thresholds for metric=%s: bad direction %r", metric, direction)
            continue
        if base is None and not {"excellent", "good", "fair"} <= set(entry):
            logger.warning("Ignoring benchmark thresholds for metric=%s: incomplete ladder", metric)
            continue
        ladders[metric] = ThresholdLadder(
            direction=direction,
            excellent=_as_float(entry.get("excellent"), base.excellent if base else 0.0),
            good=_as_float(entry.get("good"), base.good if base else 0.0),
            fair=_as_float(entry.get("fair"), base.fair if base else 0.0),
        )
    return ladders


def worst_tier(tiers: Iterable[Tier]) -> Tier | None:
    """Lowest tier by Excellent > Good > Fair > Risky, or None when empty."""
    return min(tiers, key=lambda tier: tier.rank, default=None)


class BenchmarkClassifier:
    """
    Maps a metric value to a Tier using per-metric threshold ladders.

    Classification is total: every value lands in exactly one tier.
    """

    def __init__(
        self,
        ladders: Mapping[str, ThresholdLadder] | None = None,
        formulas: Iterable[MetricFormula] = DEFAULT_FORMULAS,
    ) -> None:
        self._ladders: dict[str, ThresholdLadder] = dict(ladders or DEFAULT_LADDERS)
        self._formulas = {formula.name: formula for formula in formulas}

    @property
    def ladders(self) -> dict[str, ThresholdLadder]:
        return dict(self._ladders)

    def classify(self, metric: str, value: float) -> Tier:
        """
        Classify *value* for *metric*.

        Raises
        ------
        UnknownMetricError
            When *metric* has no configured ladder.
        """
        ladder = self._ladders.get(metric)
        if ladder is None:
            raise UnknownMetricError(f"No benchmark thresholds for metric {metric!r}.")
        return ladder.tier_for(value)

    def benchmark_table(self, metrics: Metrics) -> list[BenchmarkEntry]:
        """Classify every benchmarked metric in dashboard order."""
        values = metrics.as_dict()
        ordered = [name for name in BENCHMARK_ORDER if name in self._ladders]
        ordered.extend(sorted(name for name in self._ladders if name not in BENCHMARK_ORDER))

        entries: list[BenchmarkEntry] = []
        for name in ordered:
            if name not in values:
                continue
            formula = self._formulas.get(name)
            entries.append(
                BenchmarkEntry(
                    metric=name,
                    label=formula.label if formula else name,
                    unit=formula.unit if formula else "ratio",
                    value=values[name],
                    tier=self.classify(name, values[name]),
                )
            )
        return entries

    def focus_list(self, metrics: Metrics) -> FocusList:
        return focus_list(self.benchmark_table(metrics))


def focus_list(entries: Iterable[BenchmarkEntry]) -> FocusList:
    """Split Fair and Risky entries out of a benchmark table."""
    entries = list(entries)
    counts = {tier.value: 0 for tier in Tier}
    for entry in entries:
        counts[entry.tier.value] += 1
    return FocusList(
        risky=tuple(entry for entry in entries if entry.tier is Tier.RISKY),
        fair=tuple(entry for entry in entries if entry.tier is Tier.FAIR),
        counts=counts,
    )
