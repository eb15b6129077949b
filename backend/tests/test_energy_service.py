"""Tests for the energy service orchestration."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from clarity.exceptions import InvalidCheckIn, InvalidHealthRecord, StoreFailure
from clarity.models import CheckIn
from clarity.services import energy_service as energy_service_module
from clarity.services.energy_service import EnergyService
from clarity.services.score_cache import check_in_fingerprint

from conftest import DAY

MORNING_AT = datetime(2026, 3, 10, 8, 0)
EVENING_AT = datetime(2026, 3, 10, 20, 0)


@pytest.fixture
def service(db, settings, llm_service):
    return EnergyService(db, settings, llm_service)


# ─── Scores ──────────────────────────────────────────────────────────────────

class TestScores:

    @pytest.mark.asyncio
    async def test_no_check_ins_means_no_score(self, service, fake_provider):
        assert await service.get_or_compute_score("u1", DAY) is None
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_score_is_cached_until_check_ins_change(self, service, fake_provider):
        await service.ingest_check_in("u1", "morning", {"rested_score": 8}, at=MORNING_AT)
        calls_after_ingest = len(fake_provider.calls)

        cached = await service.get_or_compute_score("u1", DAY)
        assert len(fake_provider.calls) == calls_after_ingest

        await service.ingest_check_in("u1", "evening", {"alcohol": True}, at=EVENING_AT)
        assert len(fake_provider.calls) > calls_after_ingest

        fresh = await service.get_or_compute_score("u1", DAY)
        assert fresh.id == cached.id
        assert fresh.check_in_hash == check_in_fingerprint(service.store.list_check_ins("u1", DAY))

    @pytest.mark.asyncio
    async def test_stored_score_without_reasons_is_recomputed(self, service, fake_provider):
        await service.ingest_check_in("u1", "morning", {"rested_score": 8}, at=MORNING_AT)
        check_ins = service.store.list_check_ins("u1", DAY)
        service.store.upsert_energy_score(
            "u1", DAY, score=5.0, explanation="stub", actions=[{"id": "1", "title": "Walk", "reason": ""}],
            factors={}, check_in_hash=check_in_fingerprint(check_ins), generated_by="fallback",
        )

        score = await service.get_or_compute_score("u1", DAY)

        assert score.explanation == fake_provider.text
        assert all(a["reason"] for a in score.actions)

    @pytest.mark.asyncio
    async def test_force_recompute_replaces_score(self, service, fake_provider):
        await service.ingest_check_in("u1", "morning", {"rested_score": 8}, at=MORNING_AT)
        calls = len(fake_provider.calls)

        score = await service.force_recompute("u1", DAY)

        assert score is not None
        assert len(fake_provider.calls) == calls + 2

    @pytest.mark.asyncio
    async def test_generator_outage_still_stores_a_score(self, db, settings, failing_llm_service):
        service = EnergyService(db, settings, failing_llm_service)

        result = await service.ingest_check_in("u1", "morning", {"rested_score": 2}, at=MORNING_AT)

        assert result.energy_score.generated_by == "fallback"
        assert len(result.energy_score.actions) == 3
        assert result.energy_score.score < 5.0

    @pytest.mark.asyncio
    async def test_health_records_and_habits_feed_the_score(self, service):
        service.ingest_health_record("u1", "sleep", DAY, {"duration_hours": 8})
        service.log_habits("u1", DAY, {"exercise_done": True, "exercise_duration": 40})

        result = await service.ingest_check_in("u1", "midday", {"energy_level": "ok"}, at=MORNING_AT)

        factors = result.energy_score.factors
        assert factors["sleep"] == 1.5
        assert factors["activity"] == 0.5
        assert result.energy_score.score == 7.1


# ─── Check-in ingestion ──────────────────────────────────────────────────────

class TestIngestCheckIn:

    @pytest.mark.asyncio
    async def test_check_in_pipeline(self, service):
        result = await service.ingest_check_in(
            "u1", "morning", {"rested_score": 9, "motivation_level": "high", "mystery": 1}, at=MORNING_AT,
        )

        assert result.check_in.check_in_date == DAY
        assert result.check_in.payload == {"rested_score": 9, "motivation_level": "high"}
        assert result.step_status() == {"derive_habits": True, "recompute_score": True}
        assert result.energy_score.generated_by == "llm"
        assert service.get_habits("u1", DAY).sleep_quality == "excellent"

    @pytest.mark.asyncio
    async def test_invalid_check_in_is_not_stored(self, service, db):
        with pytest.raises(InvalidCheckIn):
            await service.ingest_check_in("u1", "morning", {"rested_score": 11}, at=MORNING_AT)

        assert db.query(CheckIn).count() == 0

    @pytest.mark.asyncio
    async def test_habit_failure_does_not_lose_check_in(self, service, db, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("habit table missing")

        monkeypatch.setattr(energy_service_module, "apply_check_in_to_habits", broken)

        result = await service.ingest_check_in("u1", "evening", {"alcohol": True}, at=EVENING_AT)

        assert result.step_status() == {"derive_habits": False, "recompute_score": True}
        assert "habit table missing" in result.steps[0].error
        assert result.energy_score is not None
        assert db.query(CheckIn).count() == 1

    @pytest.mark.asyncio
    async def test_score_write_failure_does_not_lose_check_in(self, service, db, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreFailure("upsert_energy_score")

        monkeypatch.setattr(service.store, "upsert_energy_score", broken)

        result = await service.ingest_check_in("u1", "morning", {"rested_score": 5}, at=MORNING_AT)

        assert result.step_status() == {"derive_habits": True, "recompute_score": False}
        assert result.energy_score is None
        assert db.query(CheckIn).count() == 1

    @pytest.mark.asyncio
    async def test_check_in_write_failure_propagates(self, service, db, monkeypatch):
        def failing_commit():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", failing_commit)

        with pytest.raises(StoreFailure) as excinfo:
            await service.ingest_check_in("u1", "morning", {"rested_score": 5}, at=MORNING_AT)

        assert excinfo.value.operation == "add_check_in"

    @pytest.mark.asyncio
    async def test_check_in_status(self, service):
        await service.ingest_check_in("u1", "morning", {}, at=MORNING_AT)
        await service.ingest_check_in("u1", "evening", {}, at=EVENING_AT)

        assert service.check_in_status("u1", DAY) == {"morning": True, "midday": False, "evening": True}
        assert service.check_in_status("u2", DAY) == {"morning": False, "midday": False, "evening": False}


# ─── Other operations ────────────────────────────────────────────────────────

class TestOtherOperations:

    def test_health_record_upsert_replaces_payload(self, service):
        service.ingest_health_record("u1", "steps", DAY, {"count": 4000})
        record = service.ingest_health_record("u1", "steps", DAY, {"count": 9000}, source="healthkit")

        records = service.list_health_records("u1", DAY, DAY)
        assert len(records) == 1
        assert record.payload == {"count": 9000}
        assert record.source == "healthkit"

    def test_invalid_health_payload(self, service):
        with pytest.raises(InvalidHealthRecord):
            service.ingest_health_record("u1", "hrv", DAY, {"value": -5})

    def test_habit_history_is_newest_first(self, service):
        for offset in range(3):
            service.log_habits("u1", DAY - timedelta(days=offset), {"water_glasses": offset + 1})
        service.log_habits("u1", DAY - timedelta(days=10), {"water_glasses": 9})

        history = service.habit_history("u1", DAY - timedelta(days=6), DAY)

        assert [h.date for h in history] == [DAY, DAY - timedelta(days=1), DAY - timedelta(days=2)]

    def test_habit_summary_over_window(self, service):
        service.log_habits("u1", DAY, {"exercise_done": True, "exercise_duration": 25, "mood": "good"})
        service.log_habits("u1", DAY - timedelta(days=1), {"exercise_done": True, "exercise_duration": 35, "mood": "great"})

        summary = service.habit_summary("u1", DAY - timedelta(days=6), DAY)

        assert summary.days_tracked == 2
        assert summary.exercise_days == 2
        assert summary.total_exercise_minutes == 60
        assert summary.avg_mood == 4.5

    def test_manual_habits_merge(self, service):
        service.log_habits("u1", DAY, {"water_glasses": 3})
        habit = service.log_habits("u1", DAY, {"mood": "good", "not_a_field": 1})

        assert habit.water_glasses == 3
        assert habit.mood == "good"

    @pytest.mark.asyncio
    async def test_feedback(self, service):
        result = await service.ingest_check_in("u1", "morning", {"rested_score": 7}, at=MORNING_AT)
        score_id = result.energy_score.id

        assert service.submit_feedback("u2", score_id, True) is None
        service.submit_feedback("u1", score_id, True)
        service.submit_feedback("u1", score_id, False)
        service.submit_feedback("u1", score_id, True)

        assert service.feedback_stats("u1") == {"total": 3, "matched": 2, "match_rate": 66.7}
        assert service.feedback_stats("u2") == {"total": 0, "matched": 0, "match_rate": 0.0}

    def test_recommendations_without_history(self, service):
        recs = service.get_today_recommendations("u1", DAY)

        assert [r.category for r in recs] == ["tracking"]
