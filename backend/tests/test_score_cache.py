"""Tests for the check-in fingerprint and cache validity rule."""

import random
from types import SimpleNamespace

from clarity.services.score_cache import (
    CacheState,
    cache_state,
    check_in_fingerprint,
    has_full_explanation,
    is_cache_valid,
)

from conftest import make_check_in


def _check_ins():
    return [
        make_check_in("morning", {"rested_score": 7, "motivation_level": "high"}, id="a1"),
        make_check_in("midday", {"energy_level": "ok"}, id="b2"),
        make_check_in("evening", {"alcohol": True, "late_caffeine": False}, id="c3"),
    ]


def _stored(check_in_hash, actions):
    return SimpleNamespace(check_in_hash=check_in_hash, actions=actions)


REASONED = [{"id": "1", "title": "Walk", "reason": "Movement helps"}]


class TestFingerprint:

    def test_shuffling_does_not_change_fingerprint(self):
        check_ins = _check_ins()
        expected = check_in_fingerprint(check_ins)

        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(check_ins)
            rng.shuffle(shuffled)
            assert check_in_fingerprint(shuffled) == expected

    def test_payload_key_order_does_not_matter(self):
        a = [make_check_in("evening", {"alcohol": True, "late_caffeine": False}, id="x")]
        b = [make_check_in("evening", {"late_caffeine": False, "alcohol": True}, id="x")]

        assert check_in_fingerprint(a) == check_in_fingerprint(b)

    def test_any_payload_change_changes_fingerprint(self):
        original = _check_ins()
        edited = _check_ins()
        edited[1].payload = {"energy_level": "low"}

        assert check_in_fingerprint(original) != check_in_fingerprint(edited)

    def test_new_check_in_changes_fingerprint(self):
        check_ins = _check_ins()
        more = check_ins + [make_check_in("midday", {"energy_level": "high"}, id="d4")]

        assert check_in_fingerprint(check_ins) != check_in_fingerprint(more)

    def test_fingerprint_fits_the_stored_column(self):
        fingerprint = check_in_fingerprint(_check_ins())

        assert len(fingerprint) == 16
        int(fingerprint, 16)


class TestCacheValidity:

    def test_missing_score(self):
        assert cache_state(None, _check_ins()) is CacheState.MISSING
        assert not is_cache_valid(None, _check_ins())

    def test_hash_match_with_reasons_is_fresh(self):
        check_ins = _check_ins()
        stored = _stored(check_in_fingerprint(check_ins), REASONED)

        assert cache_state(stored, check_ins) is CacheState.FRESH
        assert is_cache_valid(stored, check_ins)

    def test_hash_mismatch_is_stale_even_with_reasons(self):
        stored = _stored("0000000000000000", REASONED)

        assert cache_state(stored, _check_ins()) is CacheState.STALE

    def test_hash_match_without_reasons_is_stale(self):
        check_ins = _check_ins()
        fingerprint = check_in_fingerprint(check_ins)

        for actions in ([], None, [{"id": "1", "title": "Walk"}], [{"id": "1", "title": "Walk", "reason": "   "}]):
            assert not is_cache_valid(_stored(fingerprint, actions), check_ins)

    def test_one_reason_is_enough(self):
        actions = [
            {"id": "1", "title": "Walk", "reason": ""},
            {"id": "2", "title": "Water", "reason": "Hydration helps"},
        ]

        assert has_full_explanation(actions)

    def test_missing_hash_is_stale(self):
        stored = _stored(None, REASONED)

        assert cache_state(stored, _check_ins()) is CacheState.STALE
