"""
Cache gatekeeper for stored energy scores.

A stored score is reused only while the day's check-in set is unchanged
(fingerprint match) and its actions carry generated reasons. Anything else
means the score must be recomputed.
"""

import hashlib
import json
import logging
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 16


class CacheState(str, Enum):
    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"


def _canonical_json(payload: Any) -> str:
    return json.dumps(payload or {}, sort_keys=True, separators=(",", ":"), default=str)


def check_in_fingerprint(check_ins: Iterable[Any]) -> str:
    """Order-independent hash over (id, kind, payload) of every check-in."""
    ordered = sorted(check_ins, key=lambda c: str(c.id))
    serialized = "|".join(
        f"{c.id}:{c.kind}:{_canonical_json(c.payload)}" for c in ordered
    )
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def has_full_explanation(actions: Optional[Sequence[Any]]) -> bool:
    """True when at least one action has a non-blank reason."""
    for action in actions or []:
        reason = action.get("reason") if isinstance(action, dict) else getattr(action, "reason", None)
        if isinstance(reason, str) and reason.strip():
            return True
    return False


def cache_state(stored: Any, check_ins: Sequence[Any]) -> CacheState:
    if stored is None:
        return CacheState.MISSING
    if stored.check_in_hash != check_in_fingerprint(check_ins):
        return CacheState.STALE
    if not has_full_explanation(stored.actions):
        return CacheState.STALE
    return CacheState.FRESH


def is_cache_valid(stored: Any, check_ins: Sequence[Any]) -> bool:
    return cache_state(stored, check_ins) is CacheState.FRESH
