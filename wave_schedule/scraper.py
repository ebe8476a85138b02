"""
Schedule queries over one or more weeks of the Lake Schedule.

Each week is fetched and parsed independently (weeks share no state, so
they are fetched in parallel), then merged, clipped to the requested
window, deduplicated and sorted.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from .config import Settings
from .errors import NoSessionsForDate
from .models import Session
from .schedule_fetch import FetchResult, ScheduleFetcher
from .schedule_html import dedupe_sessions, format_day_label, monday_of, parse_schedule_html

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeekSchedule:
    week_anchor: date
    sessions: List[Session]
    fetch: FetchResult


@dataclass
class RangeReport:
    """Diagnostics for the last range query."""

    weeks: List[date] = field(default_factory=list)
    degraded_weeks: List[date] = field(default_factory=list)
    attempts: int = 0

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_weeks)


def week_anchors(start: date, end: date) -> List[date]:
    """Distinct Mondays of every week touching [start, end]."""
    anchors = []
    monday = monday_of(start)
    while monday <= end:
        anchors.append(monday)
        monday += timedelta(days=7)
    return anchors


class WaveScheduleScraper:
    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: Optional[ScheduleFetcher] = None,
    ):
        self.settings = settings or Settings()
        self.fetcher = fetcher or ScheduleFetcher(self.settings)
        self.last_report = RangeReport()

    def _now(self) -> datetime:
        return datetime.now(self.settings.timezone)

    def fetch_week(self, week_anchor: date) -> WeekSchedule:
        anchor = monday_of(week_anchor)
        result = self.fetcher.fetch(anchor)
        sessions = parse_schedule_html(result.html, anchor, self.settings.booking_url)
        logger.info("Week of %s: %d session(s)", anchor.isoformat(), len(sessions))
        return WeekSchedule(anchor, sessions, result)

    def _fetch_weeks(self, anchors: List[date]) -> List[WeekSchedule]:
        if len(anchors) <= 1 or self.settings.fetch_workers <= 1:
            weeks = [self.fetch_week(a) for a in anchors]
        else:
            workers = min(self.settings.fetch_workers, len(anchors))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                weeks = list(pool.map(self.fetch_week, anchors))

        report = RangeReport(weeks=list(anchors))
        for week in weeks:
            report.attempts += week.fetch.attempts
            if week.fetch.degraded:
                report.degraded_weeks.append(week.week_anchor)
        if report.degraded:
            logger.warning(
                "Degraded data for week(s): %s",
                ", ".join(d.isoformat() for d in report.degraded_weeks),
            )
        self.last_report = report
        return weeks

    def get_sessions_in_range(
        self,
        days: int,
        start: date | datetime | None = None,
    ) -> List[Session]:
        """
        Sessions from start through the end of start + days (inclusive).

        A datetime start also excludes sessions earlier that day; a plain
        date (or None, meaning today) covers the whole first day.
        """
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        if start is None:
            start = self._now().date()
        if isinstance(start, datetime):
            start_day = start.date()
            lower = start.strftime("%Y-%m-%d %H:%M")
        else:
            start_day = start
            lower = f"{start.isoformat()} 00:00"
        end_day = start_day + timedelta(days=days)
        upper = f"{end_day.isoformat()} 23:59"

        weeks = self._fetch_weeks(week_anchors(start_day, end_day))
        merged = [s for w in weeks for s in w.sessions if lower <= s.start_key <= upper]
        sessions = dedupe_sessions(merged)
        logger.info(
            "%d session(s) between %s and %s across %d week(s)",
            len(sessions), lower, upper, len(weeks),
        )
        return sessions

    def get_sessions_for_date(self, day: date | datetime) -> List[Session]:
        """
        Sessions on one calendar day.

        Raises NoSessionsForDate when that day has none although the rest of
        its week parsed, listing the day labels that were seen.
        """
        if isinstance(day, datetime):
            day = day.date()
        label = format_day_label(day)
        logger.info('Looking for date label: "%s"', label)

        weeks = self._fetch_weeks([monday_of(day)])
        week_sessions = weeks[0].sessions
        for_day = [s for s in week_sessions if s.date_iso == day.isoformat()]

        if not for_day and week_sessions:
            seen_dates = sorted({s.date_iso for s in week_sessions})
            labels = [format_day_label(date.fromisoformat(d)) for d in seen_dates]
            raise NoSessionsForDate(label, labels)
        if not for_day:
            logger.warning("No sessions parsed for the week of %s", monday_of(day).isoformat())

        logger.info("Found %d session(s) for %s", len(for_day), label)
        return for_day

    def get_todays_sessions(self) -> List[Session]:
        return self.get_sessions_for_date(self._now().date())

    def get_tomorrows_sessions(self) -> List[Session]:
        return self.get_sessions_for_date(self._now().date() + timedelta(days=1))
