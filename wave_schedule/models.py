"""
Data model: scraped sessions, user constraint sets and ledger records.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, NamedTuple


class Level(str, Enum):
    BEGINNER = "beginner"
    IMPROVER = "improver"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class Side(str, Enum):
    LEFT = "Left"
    RIGHT = "Right"
    ANY = "Any"

    @classmethod
    def parse(cls, value: "str | Side") -> "Side":
        """Accept 'Left'/'L', 'Right'/'R', 'Any'/'A' in any case."""
        if isinstance(value, Side):
            return value
        v = str(value).strip().lower()
        if v in ("l", "left"):
            return cls.LEFT
        if v in ("r", "right"):
            return cls.RIGHT
        if v in ("a", "any"):
            return cls.ANY
        raise ValueError(f"Unknown side: {value!r}")


class Timing(str, Enum):
    """Notification lead time before a session starts."""

    ONE_WEEK = "1w"
    HOURS_48 = "48h"
    HOURS_24 = "24h"
    HOURS_12 = "12h"
    HOURS_2 = "2h"

    @property
    def delta(self) -> timedelta:
        return _TIMING_DELTAS[self]

    @property
    def label(self) -> str:
        return _TIMING_LABELS[self]


_TIMING_DELTAS = {
    Timing.ONE_WEEK: timedelta(weeks=1),
    Timing.HOURS_48: timedelta(hours=48),
    Timing.HOURS_24: timedelta(hours=24),
    Timing.HOURS_12: timedelta(hours=12),
    Timing.HOURS_2: timedelta(hours=2),
}

_TIMING_LABELS = {
    Timing.ONE_WEEK: "1 week",
    Timing.HOURS_48: "48 hours",
    Timing.HOURS_24: "24 hours",
    Timing.HOURS_12: "12 hours",
    Timing.HOURS_2: "2 hours",
}


class RawEntry(NamedTuple):
    """One (day, time, name, availability) tuple as read off the page."""

    day_label: str
    time_label: str
    name: str
    availability: str


@dataclass(frozen=True)
class Session:
    date_iso: str
    time24: str
    session_name: str
    level: Level
    side: Side
    spots_available: int
    booking_url: str = ""

    @property
    def is_full(self) -> bool:
        return self.spots_available == 0

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.date_iso, self.time24, self.session_name)

    @property
    def start_key(self) -> str:
        """Sortable 'YYYY-MM-DD HH:MM' string."""
        return f"{self.date_iso} {self.time24}"

    @property
    def session_id(self) -> str:
        joined = "|".join(self.key)
        return hashlib.md5(joined.encode("utf-8")).hexdigest()

    def starts_at(self) -> datetime:
        """Naive local start time."""
        return datetime.strptime(self.start_key, "%Y-%m-%d %H:%M")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dateISO": self.date_iso,
            "time24": self.time24,
            "sessionName": self.session_name,
            "level": self.level.value,
            "side": self.side.value,
            "spotsAvailable": self.spots_available,
            "isFull": self.is_full,
            "bookingUrl": self.booking_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            date_iso=data["dateISO"],
            time24=data["time24"],
            session_name=data["sessionName"],
            level=Level(data["level"]),
            side=Side.parse(data["side"]),
            spots_available=int(data["spotsAvailable"]),
            booking_url=data.get("bookingUrl", ""),
        )


def _hhmm(value: str) -> str:
    """'6:00' / '06:00:00' -> '06:00'."""
    parts = str(value).strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time: {value!r}")
    return f"{int(parts[0]):02d}:{int(parts[1]):02d}"


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) range of 24h 'HH:MM' times."""

    start: str
    end: str

    def __post_init__(self):
        object.__setattr__(self, "start", _hhmm(self.start))
        object.__setattr__(self, "end", _hhmm(self.end))

    def contains(self, time24: str) -> bool:
        return self.start <= time24 < self.end

    @classmethod
    def coerce(cls, value: Any) -> "TimeWindow":
        if isinstance(value, TimeWindow):
            return value
        if isinstance(value, dict):
            start = value.get("start", value.get("start_time"))
            end = value.get("end", value.get("end_time"))
            return cls(start, end)
        start, end = value
        return cls(start, end)


@dataclass(frozen=True)
class UserConstraintSet:
    """
    A user's stored preferences. An empty dimension means no restriction
    on that dimension.
    """

    user_id: str
    levels: frozenset = field(default_factory=frozenset)
    sides: frozenset = field(default_factory=frozenset)
    days: frozenset = field(default_factory=frozenset)
    time_windows: tuple = ()
    min_spots: int = 1
    timing_offsets: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "levels", frozenset(Level(v) for v in self.levels))
        object.__setattr__(self, "sides", frozenset(Side.parse(v) for v in self.sides))
        object.__setattr__(self, "days", frozenset(int(d) for d in self.days))
        object.__setattr__(
            self, "time_windows", tuple(TimeWindow.coerce(w) for w in self.time_windows)
        )
        object.__setattr__(
            self, "timing_offsets", frozenset(Timing(t) for t in self.timing_offsets)
        )
        if self.min_spots < 1:
            raise ValueError(f"min_spots must be >= 1, got {self.min_spots}")
        bad_days = [d for d in self.days if not 0 <= d <= 6]
        if bad_days:
            raise ValueError(f"days must be in 0..6 (Mon=0), got {sorted(bad_days)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "levels": sorted(l.value for l in self.levels),
            "sides": sorted(s.value for s in self.sides),
            "days": sorted(self.days),
            "time_windows": [{"start": w.start, "end": w.end} for w in self.time_windows],
            "min_spots": self.min_spots,
            "timing_offsets": sorted(t.value for t in self.timing_offsets),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserConstraintSet":
        return cls(
            user_id=str(data["user_id"]),
            levels=data.get("levels", ()),
            sides=data.get("sides", ()),
            days=data.get("days", ()),
            time_windows=data.get("time_windows", ()),
            min_spots=int(data.get("min_spots", 1)),
            timing_offsets=data.get("timing_offsets", ()),
        )


@dataclass(frozen=True)
class NotificationRecord:
    user_id: str
    session_id: str
    timing: Timing
    sent_at: datetime


def sessions_to_dicts(sessions: Iterable[Session]) -> list[Dict[str, Any]]:
    return [s.to_dict() for s in sessions]

