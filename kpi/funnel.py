"""
kpi/funnel.py

Marketing funnel KPI formula implementation.

Expected inputs
---------------
Summed totals keyed by numeric field: spend, impressions, clicks, leads,
booked, show_ups, qualified_calls, deals_closed, revenue, cash_in.

Formulas
--------
CTR              = clicks / impressions
CPC              = spend / clicks
Lead Conversion  = leads / clicks
CPL              = spend / leads
Book Rate        = booked / leads
Show Rate        = show_ups / booked
Qual. Call Rate  = qualified_calls / show_ups
Close Rate       = deals_closed / qualified_calls
CPA              = spend / deals_closed
ROAS             = revenue / spend
MER              = cash_in / spend

Division by zero, or any non-finite operand, yields exactly 0.0 so every
downstream consumer can rely on finite metrics.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence

from app.domain.marketing_fact import NUMERIC_FIELDS, FactRow, Metrics, Totals
from kpi.base import BaseKPIFormula


@dataclass(frozen=True)
class MetricFormula:
    """
    One guarded ratio: ``numerator / denominator`` over Totals fields.
    """

    name: str
    numerator: str
    denominator: str
    unit: str
    label: str


DEFAULT_FORMULAS: tuple[MetricFormula, ...] = (
    MetricFormula("ctr", "clicks", "impressions", "rate", "Click-Through Rate (CTR)"),
    MetricFormula("cpc", "spend", "clicks", "currency", "Cost per Click (CPC)"),
    MetricFormula("lead_conv", "leads", "clicks", "rate", "Lead Conversion Rate (Clicks → Leads)"),
    MetricFormula("cpl", "spend", "leads", "currency", "Cost per Lead (CPL)"),
    MetricFormula("book_rate", "booked", "leads", "rate", "Book Rate (Leads → Booked)"),
    MetricFormula("show_rate", "show_ups", "booked", "rate", "Show-Up Rate (Booked → Show-Ups)"),
    MetricFormula(
        "qual_call_rate",
        "qualified_calls",
        "show_ups",
        "rate",
        "Qualified Call Rate (Show-Ups → Qualified Calls)",
    ),
    MetricFormula(
        "close_rate",
        "deals_closed",
        "qualified_calls",
        "rate",
        "Close Rate (Qualified Calls → Deals Closed)",
    ),
    MetricFormula("cpa", "spend", "deals_closed", "currency", "Cost per Acquisition (CPA)"),
    MetricFormula("roas", "revenue", "spend", "ratio", "Return on Ad Spend (ROAS)"),
    MetricFormula("mer", "cash_in", "spend", "ratio", "Marketing Efficiency Ratio (MER)"),
)

FUNNEL_STAGES: tuple[tuple[str, str, str | None], ...] = (
    ("impressions", "Impressions", None),
    ("clicks", "Clicks", "ctr"),
    ("leads", "Leads", "lead_conv"),
    ("booked", "Booked", "book_rate"),
    ("show_ups", "Show-Ups", "show_rate"),
    ("qualified_calls", "Qualified Calls", "qual_call_rate"),
    ("deals_closed", "Deals Closed", "close_rate"),
)


def guarded_divide(numerator: float, denominator: float) -> float:
    """
    ``numerator / denominator``, or 0.0 when the result would not be finite.
    """
    if denominator == 0 or not math.isfinite(numerator) or not math.isfinite(denominator):
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def apply_formula_overrides(
    overrides: Mapping[str, Mapping[str, Any]],
    formulas: Sequence[MetricFormula] = DEFAULT_FORMULAS,
) -> tuple[tuple[MetricFormula, ...], list[str]]:
    """
    Replace numerator/denominator pairs from a ``{metric: {...}}`` mapping.

    Returns the new formula tuple plus a list of problems for entries that
    were ignored (unknown metric or totals field).
    """

    problems: list[str] = []
    known = {formula.name for formula in formulas}
    for name in overrides:
        if name not in known:
            problems.append(f"unknown metric {name!r}")

    updated: list[MetricFormula] = []
    for formula in formulas:
        override = overrides.get(formula.name)
        if not isinstance(override, Mapping):
            updated.append(formula)
            continue
        numerator = override.get("numerator", formula.numerator)
        denominator = override.get("denominator", formula.denominator)
        if numerator not in NUMERIC_FIELDS or denominator not in NUMERIC_FIELDS:
            problems.append(f"{formula.name}: unknown totals field in {numerator!r}/{denominator!r}")
            updated.append(formula)
            continue
        updated.append(replace(formula, numerator=numerator, denominator=denominator))
    return tuple(updated), problems


def compute_totals(rows: Iterable[FactRow]) -> Totals:
    """Plain field-wise sum of every numeric column."""
    sums = dict.fromkeys(NUMERIC_FIELDS, 0.0)
    for row in rows:
        for name in NUMERIC_FIELDS:
            sums[name] += getattr(row, name)
    return Totals(**sums)


class FunnelKPIFormula(BaseKPIFormula):
    """
    Deterministic funnel KPI calculations with guarded division.

    All arithmetic is self-contained.  No I/O, no logging, no side effects.
    """

    def __init__(self, formulas: Sequence[MetricFormula] = DEFAULT_FORMULAS) -> None:
        self._formulas: tuple[MetricFormula, ...] = tuple(formulas)
        self._by_name = {formula.name: formula for formula in self._formulas}

    @property
    def formulas(self) -> tuple[MetricFormula, ...]:
        return self._formulas

    def formula(self, name: str) -> MetricFormula:
        """Return the formula for *name*; raises KeyError when unknown."""
        return self._by_name[name]

    def calculate(self, inputs: dict[str, Any]) -> dict[str, float]:
        """
        Compute every configured ratio from *inputs*.

        Missing totals are treated as 0.0.

        Returns
        -------
        dict
            One finite float per configured metric name.
        """
        return {
            formula.name: guarded_divide(
                float(inputs.get(formula.numerator, 0.0) or 0.0),
                float(inputs.get(formula.denominator, 0.0) or 0.0),
            )
            for formula in self._formulas
        }

    def calculate_one(self, name: str, inputs: dict[str, Any]) -> float:
        formula = self.formula(name)
        return guarded_divide(
            float(inputs.get(formula.numerator, 0.0) or 0.0),
            float(inputs.get(formula.denominator, 0.0) or 0.0),
        )

    def compute_metrics(self, totals: Totals) -> Metrics:
        """Derive the Metrics set from *totals*."""
        values = self.calculate(totals.as_dict())
        return Metrics(**{name: values.get(name, 0.0) for name in Metrics.__dataclass_fields__})


def build_funnel(totals: Totals, metrics: Metrics) -> list[dict[str, Any]]:
    """
    Ordered funnel stages with counts and the step rate into each stage.
    """
    stages: list[dict[str, Any]] = []
    for field_name, label, rate_metric in FUNNEL_STAGES:
        stages.append(
            {
                "stage": field_name,
                "label": label,
                "value": getattr(totals, field_name),
                "step_rate": getattr(metrics, rate_metric) if rate_metric else None,
            }
        )
    return stages
