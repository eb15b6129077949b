"""Weekly insights API router."""

from fastapi import APIRouter, Depends
from typing import List, Optional
from datetime import date

from clarity.routers.deps import get_current_user_id, get_energy_service, utc_today
from clarity.schemas import HabitPatternResult, Recommendation, WorstHabitsView
from clarity.services import EnergyService

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/habit-patterns", response_model=HabitPatternResult)
async def habit_patterns(
    week_end: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Analyze the week ending at ``week_end`` (default today)."""
    return await service.analyze_week(user_id, week_end or utc_today())


@router.get("/recommendations", response_model=List[Recommendation])
def recommendations(
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Latest weekly recommendations minus what was already done today."""
    return service.get_today_recommendations(user_id, utc_today())


@router.get("/worst-habits", response_model=WorstHabitsView)
def worst_habits(
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Top three worst habits and the leading recommendation from the latest week."""
    return service.worst_habits(user_id)
