"""
Fetch one Lake Schedule page per calendar week, with retries.

Workflow:
1. Build the page URL for the week's Monday
2. GET it with a timeout; reject HTTP >= 400 and suspiciously short bodies
3. Retry with quadratic backoff (base * attempt**2)
4. On exhaustion either raise FetchExhausted or, when sample fallback is
   enabled, return a sample page for that week flagged as degraded
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional

import requests

from .config import Settings
from .errors import FetchError, FetchExhausted
from .schedule_html import format_day_label, monday_of

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Constants
# ──────────────────────────────────────────────────────────────────

REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/126.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-GB,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

SAMPLE_SLOTS = (
    ("7:00am", (("Expert Barrels (L)", "8 spaces"), ("Expert Barrels (R)", "6 spaces"))),
    ("9:00am", (("Advanced Plus Surf (L)", "12 spaces"), ("Advanced Plus Surf (R)", "10 spaces"))),
    ("11:00am", (("Intermediate Surf (L)", "15 spaces"), ("Intermediate Surf (R)", "14 spaces"))),
    ("12:30pm", (("Improver Session (L)", "10 spaces"),)),
    ("2:00pm", (("Advanced Coaching (R)", "8 spaces"),)),
    ("3:30pm", (("Intermediate Surf (L)", "16 spaces"),)),
    ("5:00pm", (("Improver Lesson (R)", "12 spaces"),)),
    ("6:30pm", (("Advanced Surf (L)", "6 spaces"),)),
)


def sample_html(week_anchor: date) -> str:
    """
    Stand-in schedule page served in degraded mode: the same day of
    SAMPLE_SLOTS repeated for each day of the requested week.
    """
    monday = monday_of(week_anchor)
    parts = ["<html><body>", "<div>Session Calendar</div>"]
    for offset in range(7):
        parts.append(f"<div>{format_day_label(monday + timedelta(days=offset))}</div>")
        for time_label, slots in SAMPLE_SLOTS:
            parts.append(f"<div>{time_label}</div>")
            for name, availability in slots:
                parts.append(f"<div>{name}</div><div>{availability}</div>")
    parts.append("</body></html>")
    return "\n".join(parts)


@dataclass(frozen=True)
class FetchResult:
    url: str
    html: str
    attempts: int
    degraded: bool = False


class ScheduleFetcher:
    """Retrying HTTP client for the weekly schedule page."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or Settings()
        self.http = http or requests.Session()
        self.http.headers.update(REQUEST_HEADERS)
        self.sleep = sleep

    def week_url(self, week_anchor: date) -> str:
        monday = monday_of(week_anchor)
        req = requests.Request(
            "GET",
            self.settings.schedule_url,
            params={self.settings.week_param: monday.isoformat()},
        ).prepare()
        return req.url

    def _get_once(self, url: str) -> str:
        try:
            res = self.http.get(url, timeout=self.settings.fetch_timeout)
        except requests.RequestException as exc:
            raise FetchError(f"Request failed: {exc}") from exc

        if res.status_code >= 400:
            raise FetchError(f"HTTP {res.status_code}: {res.reason}")

        body = res.text or ""
        if len(body) < self.settings.min_body_length:
            raise FetchError(f"Got minimal content ({len(body)} chars)")
        return body

    def fetch(self, week_anchor: date) -> FetchResult:
        url = self.week_url(week_anchor)
        attempts = max(1, self.settings.fetch_attempts)
        last_err: Exception | None = None

        for attempt in range(1, attempts + 1):
            logger.info("Attempt %d: fetching %s", attempt, url)
            try:
                html = self._get_once(url)
            except FetchError as exc:
                last_err = exc
                logger.warning("Attempt %d failed: %s", attempt, exc)
                if attempt < attempts:
                    delay = self.settings.backoff_base * attempt ** 2
                    logger.info("Retrying in %.1fs...", delay)
                    self.sleep(delay)
                continue
            logger.info("Fetched %d characters from %s", len(html), url)
            return FetchResult(url=url, html=html, attempts=attempt)

        if self.settings.fallback_to_sample:
            logger.warning(
                "All %d fetch attempts failed for %s; serving sample data (degraded mode)",
                attempts, url,
            )
            return FetchResult(url=url, html=sample_html(week_anchor), attempts=attempts, degraded=True)

        raise FetchExhausted(url, attempts, last_err)
