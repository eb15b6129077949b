"""Health data API router."""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import timedelta

from clarity.routers.deps import get_current_user_id, get_energy_service, utc_today
from clarity.schemas import HealthRecordCreate, HealthRecordResponse
from clarity.services import EnergyService

router = APIRouter(prefix="/health-data", tags=["health-data"])


@router.post("/", response_model=HealthRecordResponse, status_code=201)
def upsert_health_data(
    record: HealthRecordCreate,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    """Create or replace the record for (kind, day)."""
    return service.ingest_health_record(
        user_id,
        record.kind,
        record.source_date,
        record.payload,
        record.source,
    )


@router.get("/", response_model=List[HealthRecordResponse])
def list_health_data(
    days: int = Query(7, ge=1, le=90),
    kind: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: EnergyService = Depends(get_energy_service),
):
    end = utc_today()
    return service.list_health_records(user_id, end - timedelta(days=days - 1), end, kind)
