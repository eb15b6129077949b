"""Tests for check-in to habit derivation."""

import pytest

from clarity.exceptions import InvalidCheckIn
from clarity.services.habit_derivation import apply_check_in_to_habits, derive_habit_patch

from conftest import DAY


class TestDeriveHabitPatch:

    @pytest.mark.parametrize(
        "rested, quality",
        [(10, "excellent"), (8, "excellent"), (7, "good"), (6, "good"), (5, "fair"), (4, "fair"), (3, "poor"), (1, "poor")],
    )
    def test_rested_score_maps_to_sleep_quality(self, rested, quality):
        assert derive_habit_patch("morning", {"rested_score": rested})["sleep_quality"] == quality

    def test_morning_motivation_maps_to_mood(self):
        patch = derive_habit_patch("morning", {"motivation_level": "medium", "woke_on_time": False})

        assert patch == {"mood": "good", "woke_on_time": False}

    def test_midday_state_inference(self):
        assert derive_habit_patch("midday", {"energy_level": "low"}) == {"stress_level": 6}
        assert derive_habit_patch("midday", {"energy_level": "high", "state": "mentally_drained"}) == {
            "stress_level": 7,
            "mood": "low",
        }
        assert derive_habit_patch("midday", {"state": "distracted"}) == {"anxiety_level": 5}

    def test_midday_explicit_values_override_inferred(self):
        patch = derive_habit_patch("midday", {
            "energy_level": "low",
            "state": "mentally_drained",
            "stress_level": 3,
            "mood": "neutral",
        })

        assert patch["stress_level"] == 3
        assert patch["mood"] == "neutral"

    def test_evening_flags(self):
        patch = derive_habit_patch("evening", {
            "late_caffeine": True,
            "skipped_meals": False,
            "alcohol": True,
            "water_glasses": 9,
            "notes": "not copied",
        })

        assert patch == {
            "caffeine_late": True,
            "caffeine_cups": 1,
            "meals_count": 3,
            "meals_skipped": None,
            "alcohol_drinks": 1,
            "water_glasses": 9,
        }

    def test_explicit_caffeine_cups_win_over_flag(self):
        patch = derive_habit_patch("evening", {"late_caffeine": True, "caffeine_cups": 4})

        assert patch["caffeine_cups"] == 4

    def test_evening_drain_source(self):
        assert derive_habit_patch("evening", {"drain_source": "poor_sleep"})["sleep_quality"] == "poor"
        assert derive_habit_patch("evening", {"drain_source": "emotional"})["stress_level"] == 7
        assert derive_habit_patch("evening", {"drain_source": "emotional", "stress_level": 2})["stress_level"] == 2

    def test_derivation_is_deterministic(self):
        payload = {"late_caffeine": True, "exercise_done": True, "exercise_duration": 40}

        assert derive_habit_patch("evening", payload) == derive_habit_patch("evening", dict(payload))

    def test_unknown_kind_and_bad_payload_raise(self):
        with pytest.raises(InvalidCheckIn):
            derive_habit_patch("night", {})
        with pytest.raises(InvalidCheckIn):
            derive_habit_patch("midday", {"mood": "ecstatic"})


class TestApplyCheckInToHabits:

    def test_applying_twice_is_idempotent(self, store):
        payload = {"late_caffeine": True, "alcohol": False, "water_glasses": 6}

        first = apply_check_in_to_habits(store, "u1", DAY, "evening", payload)
        snapshot = {f: getattr(first, f) for f in ("caffeine_late", "caffeine_cups", "alcohol_drinks", "water_glasses")}
        second = apply_check_in_to_habits(store, "u1", DAY, "evening", payload)

        assert second.id == first.id
        assert {f: getattr(second, f) for f in snapshot} == snapshot

    def test_later_check_ins_merge_field_by_field(self, store):
        apply_check_in_to_habits(store, "u1", DAY, "morning", {"rested_score": 9, "motivation_level": "high"})
        habit = apply_check_in_to_habits(store, "u1", DAY, "midday", {"state": "physically_tired"})

        assert habit.sleep_quality == "excellent"
        assert habit.mood == "low"

    def test_invalid_payload_is_skipped(self, store):
        assert apply_check_in_to_habits(store, "u1", DAY, "morning", {"rested_score": 0}) is None
        assert store.get_daily_habit("u1", DAY) is None
