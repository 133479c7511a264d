"""
app/api/routers package marker.
"""

from app.api.routers.dashboard import router as dashboard_router

__all__ = [
    "dashboard_router",
]
