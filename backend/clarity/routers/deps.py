"""Shared request dependencies."""

from datetime import date, datetime
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from clarity.config import Settings, get_settings
from clarity.database import get_db
from clarity.services import EnergyService, LLMService


def get_current_user_id(x_user_id: str = Header(default="default", max_length=64)) -> str:
    """Caller identity from the X-User-Id header. Authentication happens upstream."""
    return x_user_id


def utc_today() -> date:
    """Check-ins are bucketed by their UTC calendar day."""
    return datetime.utcnow().date()


@lru_cache()
def get_llm_service() -> LLMService:
    """Process-wide generator; its Gemini client is built once, on first use."""
    return LLMService(get_settings())


def get_energy_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    llm_service: LLMService = Depends(get_llm_service),
) -> EnergyService:
    return EnergyService(db, settings, llm_service)
