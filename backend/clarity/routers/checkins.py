"""Check-ins API router."""

from fastapi import APIRouter, Depends
from typing import List, Optional
from datetime import date

from clarity.routers.deps import get_current_user_id, get_energy_service, utc_today
from clarity.schemas import (
    CheckInCreate,
    CheckInCreateResponse,
    CheckInResponse,
    CheckInStatus,
    EnergyScoreResponse,
)
from clarity.services import EnergyService

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.get("/", response_model=List[CheckInResponse])
def list_checkins(
    day: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """List a day's check-ins, oldest first."""
    return service.list_check_ins(user_id, day or utc_today())


@router.get("/status", response_model=CheckInStatus)
def checkin_status(
    day: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Which of the three daily check-ins are done."""
    return service.check_in_status(user_id, day or utc_today())


@router.post("/", response_model=CheckInCreateResponse, status_code=201)
async def create_checkin(
    checkin_data: CheckInCreate,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """
    Store a check-in and refresh the day's energy score.

    The check-in is stored even if habit derivation or scoring fails;
    ``steps`` reports which follow-up steps succeeded.
    """
    result = await service.ingest_check_in(user_id, checkin_data.kind, checkin_data.payload)

    return CheckInCreateResponse(
        check_in=CheckInResponse.model_validate(result.check_in),
        energy_score=(
            EnergyScoreResponse.model_validate(result.energy_score)
            if result.energy_score is not None
            else None
        ),
        steps=result.step_status(),
    )
