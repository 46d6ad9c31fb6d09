"""Error taxonomy for the ingestion and alerting pipeline."""

from __future__ import annotations

from typing import Optional


class AirwatchError(Exception):
    """Base class for pipeline errors."""


class UpstreamError(AirwatchError):
    """The sensor API returned a failing or malformed response for one location."""

    def __init__(self, location: int, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Upstream request failed for location {location}: {reason}")


class StoreError(AirwatchError):
    """A collection read or write could not be completed."""


class DispatchError(AirwatchError):
    """A single push notification could not be delivered."""

    def __init__(self, token: str, reason: Optional[str] = None) -> None:
        self.token = token
        self.reason = reason or "unknown error"
        super().__init__(f"Push to token {token!r} failed: {self.reason}")


class FatalStartupError(AirwatchError):
    """Infrastructure required at startup is unavailable; the process must exit."""
