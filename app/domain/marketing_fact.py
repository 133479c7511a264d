"""
app/domain/marketing_fact.py

Domain models for the normalized marketing spreadsheet dataset.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any

UNKNOWN_CHANNEL = "Unknown"
ALL_CHANNELS = "All"

NUMERIC_FIELDS: tuple[str, ...] = (
    "spend",
    "impressions",
    "clicks",
    "leads",
    "booked",
    "show_ups",
    "qualified_calls",
    "deals_closed",
    "revenue",
    "cash_in",
)


@dataclass(frozen=True)
class FactRow:
    """
    One normalized spreadsheet record.
    """

    date: datetime
    channel: str = UNKNOWN_CHANNEL
    campaign: str = ""
    spend: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    leads: float = 0.0
    booked: float = 0.0
    show_ups: float = 0.0
    qualified_calls: float = 0.0
    deals_closed: float = 0.0
    revenue: float = 0.0
    cash_in: float = 0.0


@dataclass(frozen=True)
class Totals:
    """
    Field-wise sum of the numeric FactRow columns over a row collection.
    """

    spend: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    leads: float = 0.0
    booked: float = 0.0
    show_ups: float = 0.0
    qualified_calls: float = 0.0
    deals_closed: float = 0.0
    revenue: float = 0.0
    cash_in: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class Metrics:
    """
    Derived funnel ratios. Every value is finite; failed divisions are 0.0.
    """

    ctr: float = 0.0
    cpc: float = 0.0
    lead_conv: float = 0.0
    cpl: float = 0.0
    book_rate: float = 0.0
    show_rate: float = 0.0
    qual_call_rate: float = 0.0
    close_rate: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0
    mer: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class FilterState:
    """
    Date range and channel selection supplied by the dashboard caller.
    """

    start_date: date | datetime | None = None
    end_date: date | datetime | None = None
    channel: str = ALL_CHANNELS


@dataclass(frozen=True)
class RowValidationError:
    """
    One spreadsheet row validation error detail.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None


@dataclass(frozen=True)
class Dataset:
    """
    Immutable, fully normalized snapshot of one spreadsheet load.
    """

    rows: tuple[FactRow, ...]
    resolution: Any = None
    rows_rejected: int = 0
    rows_skipped: int = 0
    validation_errors: tuple[RowValidationError, ...] = ()
    generation: int = 0
    loaded_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
