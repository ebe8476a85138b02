"""
Match sessions against a user's preferences.

Every dimension is optional: an empty constraint means "anything goes" for
that dimension, and dimensions combine with AND.
"""
from __future__ import annotations

from datetime import date
from typing import Iterable, List

from .models import Level, Session, Side, TimeWindow, UserConstraintSet


def _session_weekday(session: Session) -> int:
    """Mon=0 .. Sun=6."""
    return date.fromisoformat(session.date_iso).weekday()


def filter_sessions_for_user(
    sessions: Iterable[Session],
    levels: Iterable[Level | str] = (),
    sides: Iterable[Side | str] = (),
    days: Iterable[int] = (),
    skip_day_filter: bool = False,
    time_windows: Iterable = (),
) -> List[Session]:
    """
    Filter sessions by level, side, weekday and time of day.

    :param sides: containing Side.ANY disables side filtering.
    :param days: weekday numbers, Mon=0. Ignored when skip_day_filter is set,
        as for "today"/"tomorrow" views that are already a single day.
    :param time_windows: TimeWindow objects, (start, end) pairs or dicts
        with start/end (or start_time/end_time); half-open [start, end).
    :returns: matching sessions, in input order.

    min_spots is left to the caller (see matches_constraints).
    """
    level_set = {Level(l) for l in levels}
    side_set = {Side.parse(s) for s in sides}
    day_set = {int(d) for d in days}
    windows = [TimeWindow.coerce(w) for w in time_windows]

    filtered = list(sessions)
    if level_set:
        filtered = [s for s in filtered if s.level in level_set]
    if side_set and Side.ANY not in side_set:
        filtered = [s for s in filtered if s.side in side_set]
    if day_set and not skip_day_filter:
        filtered = [s for s in filtered if _session_weekday(s) in day_set]
    if windows:
        filtered = [s for s in filtered if any(w.contains(s.time24) for w in windows)]
    return filtered


def matches_constraints(
    session: Session,
    constraints: UserConstraintSet,
    skip_day_filter: bool = False,
) -> bool:
    """Whether one session satisfies a user's full constraint set, min_spots included."""
    if session.spots_available < constraints.min_spots:
        return False
    return bool(
        filter_sessions_for_user(
            [session],
            constraints.levels,
            constraints.sides,
            constraints.days,
            skip_day_filter,
            constraints.time_windows,
        )
    )
