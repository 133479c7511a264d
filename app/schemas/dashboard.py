"""
app/schemas/dashboard.py

Response schemas for dashboard endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class FilterEcho(BaseModel):
    """
    Filter actually applied to a response.
    """

    start_date: datetime | None = None
    end_date: datetime | None = None
    channel: str = "All"


class TotalsResponse(BaseModel):
    filters: FilterEcho
    spend: float
    impressions: float
    clicks: float
    leads: float
    booked: float
    show_ups: float
    qualified_calls: float
    deals_closed: float
    revenue: float
    cash_in: float


class MetricsResponse(BaseModel):
    filters: FilterEcho
    ctr: float
    cpc: float
    lead_conv: float
    cpl: float
    book_rate: float
    show_rate: float
    qual_call_rate: float
    close_rate: float
    cpa: float
    roas: float
    mer: float


class BenchmarkEntryResponse(BaseModel):
    metric: str
    label: str
    unit: str
    value: float
    tier: str


class FocusListResponse(BaseModel):
    """
    Metrics classified Fair or Risky, plus a count for every tier.
    """

    risky: list[BenchmarkEntryResponse] = Field(default_factory=list)
    fair: list[BenchmarkEntryResponse] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)


class BenchmarksResponse(BaseModel):
    filters: FilterEcho
    benchmarks: list[BenchmarkEntryResponse]
    focus: FocusListResponse
    worst_tier: str | None = None


class FunnelStageResponse(BaseModel):
    stage: str
    label: str
    value: float
    step_rate: float | None = None


class FunnelResponse(BaseModel):
    filters: FilterEcho
    stages: list[FunnelStageResponse]


class SeriesPointResponse(BaseModel):
    label: str
    value: float
    bucket_start: datetime


class SeriesResponse(BaseModel):
    filters: FilterEcho
    metric: str
    granularity: str
    points: list[SeriesPointResponse]


class ChannelsResponse(BaseModel):
    channels: list[str]


class FactRowResponse(BaseModel):
    date: datetime
    channel: str
    campaign: str
    spend: float
    impressions: float
    clicks: float
    leads: float
    booked: float
    show_ups: float
    qualified_calls: float
    deals_closed: float
    revenue: float
    cash_in: float


class RowsResponse(BaseModel):
    filters: FilterEcho
    total_matching: int = Field(..., ge=0)
    rows: list[FactRowResponse]


class DatasetSummaryResponse(BaseModel):
    generation: int = Field(..., ge=0)
    loaded_at: datetime
    rows_loaded: int = Field(..., ge=0)
    rows_rejected: int = Field(..., ge=0)
    rows_skipped: int = Field(..., ge=0)
    first_date: datetime | None = None
    last_date: datetime | None = None
    column_mapping: dict[str, str] = Field(default_factory=dict)
    unresolved_fields: list[str] = Field(default_factory=list)


class RefreshResponse(BaseModel):
    generation: int = Field(..., ge=1)
    rows_loaded: int = Field(..., ge=0)
    rows_rejected: int = Field(..., ge=0)
    rows_skipped: int = Field(..., ge=0)
    installed: bool
    unresolved_fields: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    dataset_loaded: bool
    generation: int | None = None
