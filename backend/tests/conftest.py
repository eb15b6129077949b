"""Shared test fixtures for the Clarity energy backend."""

import os

# Must be set before clarity.config builds its cached settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""

from datetime import date, datetime
from types import SimpleNamespace
from typing import Any, List

import pytest

import clarity.models  # noqa: F401
from clarity.config import Settings
from clarity.database import Base, build_engine
from clarity.services.llm_service import LLMService
from clarity.services.signal_store import SignalStore
from sqlalchemy.orm import sessionmaker


DAY = date(2026, 3, 10)

GOOD_ACTIONS = [
    {"id": "1", "title": "Take a short walk", "reason": "Movement lifts energy"},
    {"id": "2", "title": "Drink some water", "reason": "Hydration helps focus"},
    {"id": "3", "title": "Stretch for two minutes", "reason": "Releases tension"},
]


class FakeProvider:
    """Stands in for GeminiProvider; records every call."""

    def __init__(self, text="Looks like a solid day for you.", actions=None, error=None):
        self.text = text
        self.actions = GOOD_ACTIONS if actions is None else actions
        self.error = error
        self.calls: List[str] = []

    async def complete(self, prompt, **kwargs):
        self.calls.append("text")
        if self.error:
            raise self.error
        return self.text

    async def complete_json(self, prompt, **kwargs):
        self.calls.append("json")
        if self.error:
            raise self.error
        return self.actions


def make_check_in(kind: str, payload: Any, id: str = None, created_at: datetime = None):
    """Plain stand-in for a stored CheckIn row."""
    return SimpleNamespace(
        id=id or f"{kind}-1",
        kind=kind,
        payload=payload,
        created_at=created_at or datetime(2026, 3, 10, 9, 0),
    )


def make_health(kind: str, payload: Any):
    return SimpleNamespace(kind=kind, payload=payload)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        gemini_api_key="",
        llm_timeout_seconds=1.0,
        llm_max_attempts=3,
        llm_backoff_base_seconds=0.0,
        llm_rate_limit_backoff_seconds=0.0,
        llm_deadline_seconds=5.0,
        _env_file=None,
    )


@pytest.fixture
def db():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(db):
    return SignalStore(db)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def failing_provider():
    return FakeProvider(error=RuntimeError("generator down"))


@pytest.fixture
def llm_service(settings, fake_provider):
    return LLMService(settings, provider=fake_provider)


@pytest.fixture
def failing_llm_service(settings, failing_provider):
    return LLMService(settings, provider=failing_provider)
