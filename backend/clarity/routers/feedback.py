"""Explanation feedback API router."""

from fastapi import APIRouter, Depends, HTTPException

from clarity.routers.deps import get_current_user_id, get_energy_service
from clarity.schemas import FeedbackCreate, FeedbackResponse, FeedbackStats
from clarity.services import EnergyService

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("/", response_model=FeedbackResponse, status_code=201)
def submit_feedback(
    feedback: FeedbackCreate,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Record whether the explanation matched how the user felt."""
    record = service.submit_feedback(user_id, feedback.energy_score_id, feedback.matched)
    if record is None:
        raise HTTPException(status_code=404, detail="Energy score not found")
    return record


@router.get("/stats", response_model=FeedbackStats)
def feedback_stats(
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    return service.feedback_stats(user_id)
