"""
app/api/routers/dashboard.py

Dashboard data endpoints consumed by the rendering client.

Every data endpoint accepts the same ``start_date`` / ``end_date`` /
``channel`` query filters and recomputes its payload from the current
dataset. Before the first successful load the data endpoints answer 503;
a failed refresh answers 502 and keeps serving the last good dataset.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_filter_state
from app.config import get_dashboard_settings
from app.domain.marketing_fact import FilterState
from app.schemas.dashboard import (
    BenchmarkEntryResponse,
    BenchmarksResponse,
    ChannelsResponse,
    DatasetSummaryResponse,
    FactRowResponse,
    FilterEcho,
    FocusListResponse,
    FunnelResponse,
    FunnelStageResponse,
    MetricsResponse,
    RefreshResponse,
    RowsResponse,
    SeriesPointResponse,
    SeriesResponse,
    TotalsResponse,
)
from app.services.dashboard_service import (
    DashboardPipeline,
    DatasetNotLoadedError,
    DatasetRefreshError,
    get_dashboard_pipeline,
)
from app.services.dataset_filter import end_of_day, start_of_day
from kpi.benchmarks import BenchmarkEntry, FocusList, worst_tier

router = APIRouter(tags=["dashboard"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _echo(filter_state: FilterState) -> FilterEcho:
    return FilterEcho(
        start_date=start_of_day(filter_state.start_date) if filter_state.start_date is not None else None,
        end_date=end_of_day(filter_state.end_date) if filter_state.end_date is not None else None,
        channel=filter_state.channel,
    )


def _not_loaded(exc: DatasetNotLoadedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def _benchmark_entry(entry: BenchmarkEntry) -> BenchmarkEntryResponse:
    return BenchmarkEntryResponse(
        metric=entry.metric,
        label=entry.label,
        unit=entry.unit,
        value=entry.value,
        tier=entry.tier.value,
    )


def _focus(focus: FocusList) -> FocusListResponse:
    return FocusListResponse(
        risky=[_benchmark_entry(entry) for entry in focus.risky],
        fair=[_benchmark_entry(entry) for entry in focus.fair],
        counts=focus.counts,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=RefreshResponse)
def refresh_dataset(
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> RefreshResponse:
    """
    Re-fetch the published sheet and replace the dataset.
    """

    try:
        summary = pipeline.refresh()
    except DatasetRefreshError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error loading dashboard: {exc}",
        ) from exc

    return RefreshResponse(
        generation=summary.generation,
        rows_loaded=summary.rows_loaded,
        rows_rejected=summary.rows_rejected,
        rows_skipped=summary.rows_skipped,
        installed=summary.installed,
        unresolved_fields=list(summary.unresolved_fields),
    )


@router.get("/dataset", response_model=DatasetSummaryResponse)
def dataset_summary(
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> DatasetSummaryResponse:
    try:
        return DatasetSummaryResponse(**pipeline.dataset_summary())
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc


@router.get("/channels", response_model=ChannelsResponse)
def channels(
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> ChannelsResponse:
    try:
        return ChannelsResponse(channels=pipeline.get_channels())
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc


@router.get("/totals", response_model=TotalsResponse)
def totals(
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> TotalsResponse:
    try:
        result = pipeline.get_totals(filter_state)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc
    return TotalsResponse(filters=_echo(filter_state), **result.as_dict())


@router.get("/metrics", response_model=MetricsResponse)
def metrics(
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> MetricsResponse:
    try:
        result = pipeline.get_metrics(filter_state)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc
    return MetricsResponse(filters=_echo(filter_state), **result.as_dict())


@router.get("/benchmarks", response_model=BenchmarksResponse)
def benchmarks(
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> BenchmarksResponse:
    """
    Benchmark table with tiers, the focus list, and the worst tier overall.
    """

    try:
        result = pipeline.get_metrics(filter_state)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc

    entries = pipeline.classifier.benchmark_table(result)
    worst = worst_tier(entry.tier for entry in entries)
    return BenchmarksResponse(
        filters=_echo(filter_state),
        benchmarks=[_benchmark_entry(entry) for entry in entries],
        focus=_focus(pipeline.get_focus_list(result)),
        worst_tier=worst.value if worst is not None else None,
    )


@router.get("/focus", response_model=FocusListResponse)
def focus(
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> FocusListResponse:
    try:
        result = pipeline.get_metrics(filter_state)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc
    return _focus(pipeline.get_focus_list(result))


@router.get("/funnel", response_model=FunnelResponse)
def funnel(
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> FunnelResponse:
    try:
        stages = pipeline.get_funnel(filter_state)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc
    return FunnelResponse(
        filters=_echo(filter_state),
        stages=[FunnelStageResponse(**stage) for stage in stages],
    )


@router.get("/series", response_model=SeriesResponse)
def series(
    metric: Literal["ctr", "cpc", "cpl", "mer"] = Query(default="ctr"),
    granularity: Literal["day", "week"] = Query(default="day"),
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> SeriesResponse:
    try:
        points = pipeline.get_series(filter_state, metric, granularity)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return SeriesResponse(
        filters=_echo(filter_state),
        metric=metric,
        granularity=granularity,
        points=[SeriesPointResponse(**asdict(point)) for point in points],
    )


@router.get("/rows", response_model=RowsResponse)
def rows(
    search: str = Query(default="", description="Matches short date, channel or campaign"),
    limit: int | None = Query(default=None, ge=1),
    filter_state: FilterState = Depends(get_filter_state),
    pipeline: DashboardPipeline = Depends(get_dashboard_pipeline),
) -> RowsResponse:
    """
    Searchable row table, truncated to ``limit`` rows.
    """

    settings = get_dashboard_settings()
    effective_limit = min(limit or settings.default_row_limit, settings.max_row_limit)
    try:
        page = pipeline.get_rows_page(filter_state, search=search, limit=effective_limit)
    except DatasetNotLoadedError as exc:
        raise _not_loaded(exc) from exc

    return RowsResponse(
        filters=_echo(filter_state),
        total_matching=page.total_matching,
        rows=[FactRowResponse(**asdict(row)) for row in page.rows],
    )
