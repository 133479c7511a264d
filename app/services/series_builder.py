"""
app/services/series_builder.py

Time-bucketed trend series for one funnel metric.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Sequence

from app.domain.marketing_fact import FactRow
from app.services.dataset_filter import short_date_label
from kpi.funnel import FunnelKPIFormula, compute_totals

GRANULARITIES: tuple[str, ...] = ("day", "week")
TREND_METRICS: tuple[str, ...] = ("ctr", "cpc", "cpl", "mer")


@dataclass(frozen=True)
class SeriesPoint:
    label: str
    value: float
    bucket_start: datetime


def bucket_start(value: datetime, granularity: str) -> datetime:
    """
    Midnight of the row's calendar day, or of the ISO week's Monday.
    """
    day = datetime.combine(value.date(), time.min)
    if granularity == "week":
        return day - timedelta(days=day.weekday())
    return day


def bucket_label(start: datetime, granularity: str, *, with_year: bool = False) -> str:
    """
    ``M/D`` for days (``M/D/YYYY`` when *with_year*), ``YYYY-Www`` for ISO weeks.
    """
    if granularity == "week":
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    label = short_date_label(start)
    return f"{label}/{start.year}" if with_year else label


def build_series(
    rows: Sequence[FactRow],
    *,
    metric: str,
    granularity: str,
    formula: FunnelKPIFormula | None = None,
) -> list[SeriesPoint]:
    """
    Group *rows* into day or week buckets and compute *metric* per bucket.

    Each bucket's value comes from that bucket's own totals. Buckets without
    rows are omitted; points are sorted by bucket start.

    Raises
    ------
    ValueError
        For an unknown granularity or metric.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unsupported granularity {granularity!r}; expected one of {GRANULARITIES}.")
    formula = formula or FunnelKPIFormula()
    try:
        formula.formula(metric)
    except KeyError as exc:
        raise ValueError(f"Unsupported trend metric {metric!r}.") from exc

    buckets: dict[datetime, list[FactRow]] = {}
    for row in rows:
        buckets.setdefault(bucket_start(row.date, granularity), []).append(row)

    # Day labels carry the year once the buckets span more than one year.
    with_year = len({start.year for start in buckets}) > 1
    return [
        SeriesPoint(
            label=bucket_label(start, granularity, with_year=with_year),
            value=formula.calculate_one(metric, compute_totals(buckets[start]).as_dict()),
            bucket_start=start,
        )
        for start in sorted(buckets)
    ]
