"""
API routers package.
"""
from behavior_analytics.routers.analytics import router as analytics_router
from behavior_analytics.routers.events import router as events_router
from behavior_analytics.routers.health import router as health_router

__all__ = [
    "analytics_router",
    "events_router",
    "health_router",
]
