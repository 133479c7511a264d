"""
app/services package marker.
"""

from app.services.dashboard_service import (
    DashboardPipeline,
    DatasetNotLoadedError,
    DatasetRefreshError,
    LoadSummary,
    get_dashboard_pipeline,
)

__all__ = [
    "DashboardPipeline",
    "DatasetNotLoadedError",
    "DatasetRefreshError",
    "LoadSummary",
    "get_dashboard_pipeline",
]
