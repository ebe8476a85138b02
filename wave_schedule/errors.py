"""
Error types raised by the schedule scraper and the notification windower.
"""
from __future__ import annotations


class WaveScheduleError(Exception):
    """Base class for errors surfaced to callers."""


class FetchError(WaveScheduleError):
    """A single fetch attempt failed (network error, bad status, short body)."""


class FetchExhausted(FetchError):
    def __init__(self, url: str, attempts: int, last_error: Exception | None = None):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to fetch {url} after {attempts} attempt(s): {last_error}"
        )


class ParseAnomaly(WaveScheduleError):
    """A label or line could not be interpreted. Never leaves the parser."""


class NoSessionsForDate(WaveScheduleError):
    def __init__(self, label: str, available_labels: list[str]):
        self.label = label
        self.available_labels = list(available_labels)
        available = ", ".join(self.available_labels) or "none found"
        super().__init__(
            f"No sessions found for {label}; available labels were: {available}"
        )


class DeliveryFailure(WaveScheduleError):
    def __init__(self, user_id: str, session_id: str, reason: str = ""):
        self.user_id = user_id
        self.session_id = session_id
        super().__init__(
            f"Delivery to {user_id} for session {session_id} failed"
            + (f": {reason}" if reason else "")
        )
