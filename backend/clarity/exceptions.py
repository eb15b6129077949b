"""
Error taxonomy for the energy engine.

Only StoreFailure ever reaches a caller. GeneratorUnavailable is always
recovered by the deterministic fallback, and "no check-ins" or "not enough
history" are ordinary results (None / placeholder pattern), not errors.
"""

from typing import Optional


class ClarityError(Exception):
    """Base class for all engine errors."""


class StoreFailure(ClarityError):
    """A record store read or write failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Record store failure during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class GeneratorUnavailable(ClarityError):
    """The generative text service could not produce a usable reply."""


class RateLimited(GeneratorUnavailable):
    """The generative text service signalled HTTP 429."""


class InvalidPayload(ClarityError):
    """Submitted data does not match its schema."""


class InvalidCheckIn(InvalidPayload):
    """Check-in kind or payload does not match its schema."""


class InvalidHealthRecord(InvalidPayload):
    """Health record payload does not match the schema of its kind."""
