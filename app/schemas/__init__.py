"""
app/schemas package marker.
"""

from app.schemas.dashboard import (
    BenchmarksResponse,
    DatasetSummaryResponse,
    HealthResponse,
    MetricsResponse,
    RefreshResponse,
    RowsResponse,
    SeriesResponse,
    TotalsResponse,
)

__all__ = [
    "BenchmarksResponse",
    "DatasetSummaryResponse",
    "HealthResponse",
    "MetricsResponse",
    "RefreshResponse",
    "RowsResponse",
    "SeriesResponse",
    "TotalsResponse",
]
