"""
app/domain package marker.
"""

from app.domain.marketing_fact import (
    ALL_CHANNELS,
    NUMERIC_FIELDS,
    UNKNOWN_CHANNEL,
    Dataset,
    FactRow,
    FilterState,
    Metrics,
    RowValidationError,
    Totals,
)

__all__ = [
    "ALL_CHANNELS",
    "Dataset",
    "FactRow",
    "FilterState",
    "Metrics",
    "NUMERIC_FIELDS",
    "RowValidationError",
    "Totals",
    "UNKNOWN_CHANNEL",
]
