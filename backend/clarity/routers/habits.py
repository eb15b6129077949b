"""Daily habits API router."""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from datetime import date, timedelta

from clarity.routers.deps import get_current_user_id, get_energy_service, utc_today
from clarity.schemas import DailyHabitResponse, DailyHabitUpdate, HabitSummary
from clarity.services import EnergyService

router = APIRouter(prefix="/habits", tags=["habits"])


@router.post("/", response_model=DailyHabitResponse)
def log_habits(
    habit_data: DailyHabitUpdate,
    day: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Merge the sent fields into the day's habit record."""
    habit = service.log_habits(user_id, day or utc_today(), habit_data.model_dump(exclude_unset=True))
    if habit is None:
        raise HTTPException(status_code=400, detail="No habit fields provided")
    return habit


@router.get("/today", response_model=DailyHabitResponse)
def get_today_habits(
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    habit = service.get_habits(user_id, utc_today())
    if not habit:
        raise HTTPException(status_code=404, detail="No habits logged today")
    return habit


@router.get("/date/{day}", response_model=DailyHabitResponse)
def get_habits_for_date(
    day: date,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    habit = service.get_habits(user_id, day)
    if not habit:
        raise HTTPException(status_code=404, detail=f"No habits logged on {day}")
    return habit


@router.get("/history", response_model=List[DailyHabitResponse])
def habit_history(
    days: int = Query(7, ge=1, le=90),
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Habit records for the last N days, newest first."""
    end = utc_today()
    return service.habit_history(user_id, end - timedelta(days=days - 1), end)


@router.get("/summary", response_model=HabitSummary)
def habit_summary(
    days: int = Query(7, ge=1, le=90),
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Averages and day counts over the last N days."""
    end = utc_today()
    return service.habit_summary(user_id, end - timedelta(days=days - 1), end)
