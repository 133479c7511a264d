from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from urllib.parse import urlparse

from fastapi import FastAPI

from app.schemas.dashboard import HealthResponse


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - SHEET_CSV_URL must be set, use http or https, and name a host.
    - DASHBOARD_REFRESH_MINUTES, when set, must be a non-negative integer.
    """

    from app.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Sheet source ---------------------------------------------------
    csv_url = os.getenv("SHEET_CSV_URL", "").strip()
    parsed_url = urlparse(csv_url)
    if not csv_url:
        errors.append(
            "SHEET_CSV_URL is not set. Publish the sheet to the web as CSV and set its URL."
        )
    elif parsed_url.scheme.lower() not in {"http", "https"} or not parsed_url.netloc:
        errors.append(f"SHEET_CSV_URL='{csv_url}' is not an http(s) URL.")

    # --- Refresh interval -----------------------------------------------
    refresh_raw = os.getenv("DASHBOARD_REFRESH_MINUTES", "").strip()
    if refresh_raw and (not refresh_raw.isdigit()):
        errors.append(
            f"DASHBOARD_REFRESH_MINUTES='{refresh_raw}' is not valid. Use 0 to disable or a positive integer."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _initial_load() -> None:
    """Load the sheet once on boot. A failure is logged; endpoints answer 503 until a refresh succeeds."""
    from app.services.dashboard_service import DatasetRefreshError, get_dashboard_pipeline

    try:
        summary = get_dashboard_pipeline().refresh()
    except DatasetRefreshError as exc:
        logging.getLogger(__name__).error("Initial dataset load failed: %s", exc)
        return
    logging.getLogger(__name__).info(
        "Initial dataset loaded generation=%s rows=%s", summary.generation, summary.rows_loaded
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Load the dataset and start the refresh scheduler on boot; shut it down on exit."""
    _initial_load()

    from app.scheduler.jobs import build_scheduler
    from app.services.dashboard_service import get_dashboard_pipeline

    scheduler = build_scheduler(get_dashboard_pipeline())
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Funnel Insights API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import dashboard_router
    from app.services.dashboard_service import get_dashboard_pipeline

    application.include_router(dashboard_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        dataset = get_dashboard_pipeline().dataset
        return HealthResponse(
            status="ok",
            dataset_loaded=dataset is not None,
            generation=dataset.generation if dataset is not None else None,
        )

    return application


app = create_app()
