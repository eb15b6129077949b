"""Routers package."""

from clarity.routers.checkins import router as checkins_router
from clarity.routers.energy import router as energy_router
from clarity.routers.health_data import router as health_data_router
from clarity.routers.habits import router as habits_router
from clarity.routers.insights import router as insights_router
from clarity.routers.feedback import router as feedback_router

__all__ = [
    "checkins_router",
    "energy_router",
    "health_data_router",
    "habits_router",
    "insights_router",
    "feedback_router",
]
