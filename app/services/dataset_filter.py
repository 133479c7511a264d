"""
app/services/dataset_filter.py

Pure date-range / channel filtering and row lookup helpers over FactRows.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterable, Sequence

from app.domain.marketing_fact import ALL_CHANNELS, FactRow, FilterState


def start_of_day(value: date | datetime) -> datetime:
    """Midnight of *value*'s calendar day; datetimes are kept as given."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def end_of_day(value: date | datetime) -> datetime:
    """Last representable instant of *value*'s calendar day."""
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def filter_rows(rows: Sequence[FactRow], filter_state: FilterState) -> list[FactRow]:
    """
    Return rows inside the filter's inclusive date range and channel.

    Input order is preserved; the function has no side effects, so
    re-filtering its own output with the same state returns the same rows.
    """

    start = start_of_day(filter_state.start_date) if filter_state.start_date is not None else None
    end = end_of_day(filter_state.end_date) if filter_state.end_date is not None else None
    channel = filter_state.channel or ALL_CHANNELS

    return [
        row
        for row in rows
        if (start is None or row.date >= start)
        and (end is None or row.date <= end)
        and (channel == ALL_CHANNELS or row.channel == channel)
    ]


def list_channels(rows: Iterable[FactRow]) -> list[str]:
    """``"All"`` followed by the sorted distinct non-blank channels."""
    channels = sorted({row.channel for row in rows if row.channel})
    return [ALL_CHANNELS, *channels]


def date_extent(rows: Sequence[FactRow]) -> tuple[datetime | None, datetime | None]:
    """Earliest and latest row dates, used as the default date range."""
    if not rows:
        return None, None
    dates = [row.date for row in rows]
    return min(dates), max(dates)


def short_date_label(value: datetime) -> str:
    return f"{value.month}/{value.day}"


def search_rows(rows: Sequence[FactRow], query: str, limit: int) -> list[FactRow]:
    """
    Case-insensitive search over the short date, channel and campaign text.

    Returns at most *limit* rows in input order.
    """

    needle = (query or "").strip().lower()
    if needle:
        matched = [
            row
            for row in rows
            if needle in f"{short_date_label(row.date)} {row.channel} {row.campaign}".lower()
        ]
    else:
        matched = list(rows)
    return matched[: max(0, limit)]
