"""Error taxonomy for the catalog pipeline and playback.

Only ``PlaybackExhausted`` and ``AuthorizationDenied`` are meant to reach the
user; the rest are recovered from locally (mirror failover, memory-only cache,
reconnect backoff).
"""

from typing import Optional


class GlobalFMError(Exception):
    """Base class for all errors raised by this package."""


class NetworkFailure(GlobalFMError):
    """A mirror could not serve a request (timeout, bad status, bad JSON)."""

    def __init__(self, server: str, reason: str):
        super().__init__(f"{server}: {reason}")
        self.server = server
        self.reason = reason


class ValidationRejected(GlobalFMError):
    """A raw station record failed validation and is dropped."""

    def __init__(self, reason: str, station_id: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.station_id = station_id


class CacheWriteFailure(GlobalFMError):
    """A durable cache tier rejected a write."""

    def __init__(self, tier: str, cause: Exception):
        super().__init__(f"{tier} write failed: {cause}")
        self.tier = tier
        self.cause = cause


class PlaybackStallFailure(GlobalFMError):
    """The audio stream stalled or errored after binding."""


class PlaybackExhausted(GlobalFMError):
    """Reconnect attempts ran out; a fresh station selection is required."""

    message = "Unable to connect to stream"

    def __init__(self, attempts: int):
        super().__init__(self.message)
        self.attempts = attempts


class AuthorizationDenied(GlobalFMError):
    """The caller lacks the capability a ProfileStore operation requires."""

    def __init__(self, required: str, actual: str):
        super().__init__(f"Unauthorized: requires '{required}', caller is '{actual}'")
        self.required = required
        self.actual = actual
