"""
Digest selection: which upcoming sessions go into a user's summary, and
how they are split into pages.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List

from .filters import matches_constraints
from .models import Session, Timing, UserConstraintSet

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class DigestPage:
    sessions: List[Session]
    page: int
    total_pages: int
    total: int


def digest_days_for(timings: Iterable[Timing | str]) -> int:
    """How many days ahead a digest covers, from the user's longest timing."""
    found = {Timing(t) for t in timings}
    if Timing.ONE_WEEK in found:
        return 7
    if Timing.HOURS_48 in found:
        return 2
    return 1


def select_digest_sessions(
    sessions: Iterable[Session],
    constraints: UserConstraintSet,
) -> List[Session]:
    """Bookable sessions matching the user; weekday preferences are not applied."""
    return [
        s for s in sessions
        if s.spots_available > 0 and matches_constraints(s, constraints, skip_day_filter=True)
    ]


def paginate(sessions: List[Session], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> DigestPage:
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    total = len(sessions)
    total_pages = max(1, math.ceil(total / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    return DigestPage(sessions[start:start + per_page], page, total_pages, total)
