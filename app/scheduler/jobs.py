"""
app/scheduler/jobs.py

APScheduler-based background refresh of the dashboard dataset.

Schedule
--------
  dataset_refresh: every ``DASHBOARD_REFRESH_MINUTES`` minutes (default 15).
                    A value of 0 registers no job; data then changes only
                    through ``POST /refresh``.

Lifecycle
----------
Call ``build_scheduler(pipeline)`` once to get a configured
``BackgroundScheduler``. Start it on app boot; shut it down gracefully on app
shutdown. The scheduler is wired into FastAPI via the ``lifespan`` context in
main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_dashboard_settings
from app.services.dashboard_service import DashboardPipeline, DatasetRefreshError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Dataset refresh
# ---------------------------------------------------------------------------


def run_dataset_refresh(pipeline: DashboardPipeline) -> None:
    """
    Re-fetch the published sheet. A failed refresh keeps the previous dataset.
    """
    logger.info("Scheduler: dataset_refresh starting")
    try:
        summary = pipeline.refresh()
    except DatasetRefreshError as exc:
        logger.warning("Scheduler: dataset_refresh failed: %s", exc)
        return

    logger.info(
        "Scheduler: dataset_refresh complete generation=%s rows=%s installed=%s",
        summary.generation,
        summary.rows_loaded,
        summary.installed,
    )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(
    pipeline: DashboardPipeline,
    *,
    refresh_interval_minutes: int | None = None,
) -> BackgroundScheduler:
    """
    Build and register the periodic refresh job.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    if refresh_interval_minutes is None:
        refresh_interval_minutes = get_dashboard_settings().refresh_interval_minutes

    scheduler = BackgroundScheduler(timezone="UTC")
    if refresh_interval_minutes <= 0:
        logger.info("Scheduler: dataset_refresh disabled")
        return scheduler

    scheduler.add_job(
        run_dataset_refresh,
        trigger="interval",
        minutes=refresh_interval_minutes,
        args=[pipeline],
        id="dataset_refresh",
        name="Dashboard dataset refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )

    return scheduler
