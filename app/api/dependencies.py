"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from datetime import date

from fastapi import HTTPException, Query, status

from app.domain.marketing_fact import ALL_CHANNELS, FilterState


def get_filter_state(
    start_date: date | None = Query(default=None, description="Inclusive start date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Inclusive end date (YYYY-MM-DD)"),
    channel: str = Query(default=ALL_CHANNELS, description="Channel name or 'All'"),
) -> FilterState:
    """
    Build a FilterState from query parameters.
    """

    if start_date is not None and end_date is not None and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date.",
        )

    return FilterState(
        start_date=start_date,
        end_date=end_date,
        channel=channel.strip() or ALL_CHANNELS,
    )
