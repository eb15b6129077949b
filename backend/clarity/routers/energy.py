"""Energy score API router."""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from datetime import date, timedelta

from clarity.routers.deps import get_current_user_id, get_energy_service, utc_today
from clarity.schemas import EnergyScoreResponse
from clarity.services import EnergyService

router = APIRouter(prefix="/energy", tags=["energy"])


@router.get("/", response_model=EnergyScoreResponse)
async def get_energy(
    day: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Get the day's energy score, recomputing it if the check-ins changed."""
    score = await service.get_or_compute_score(user_id, day or utc_today())
    if score is None:
        raise HTTPException(status_code=404, detail="No check-ins for this day yet")
    return score


@router.post("/regenerate", response_model=EnergyScoreResponse)
async def regenerate_energy(
    day: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Discard the stored score and compute a fresh one."""
    score = await service.force_recompute(user_id, day or utc_today())
    if score is None:
        raise HTTPException(status_code=404, detail="No check-ins for this day yet")
    return score


@router.get("/history", response_model=List[EnergyScoreResponse])
def energy_history(
    days: int = Query(7, ge=1, le=90),
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Stored scores for the last N days."""
    end = utc_today()
    return service.list_scores(user_id, end - timedelta(days=days - 1), end)
