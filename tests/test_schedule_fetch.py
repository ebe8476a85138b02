"""Tests for schedule_fetch: week URLs, retries, backoff and sample fallback."""
from datetime import date

import pytest
import requests

from wave_schedule.config import Settings
from wave_schedule.errors import FetchExhausted
from wave_schedule.schedule_fetch import REQUEST_HEADERS, ScheduleFetcher, sample_html

GOOD_BODY = "<html><body>Session Calendar " + "x" * 100 + "</body></html>"


class FakeResponse:
    def __init__(self, status_code=200, text="", reason="OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason


class FakeHttp:
    """Replays a scripted list of responses (or exceptions) for each GET."""

    def __init__(self, script):
        self.headers = {}
        self.script = list(script)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_fetcher(script, **overrides):
    options = dict(fetch_attempts=3, backoff_base=0.5, min_body_length=50, fetch_timeout=5.0)
    options.update(overrides)
    http = FakeHttp(script)
    delays = []
    fetcher = ScheduleFetcher(Settings(**options), http=http, sleep=delays.append)
    return fetcher, http, delays


class TestWeekUrl:
    def test_uses_monday_of_week(self):
        fetcher, _, _ = make_fetcher([])
        assert fetcher.week_url(date(2024, 9, 12)) == "https://www.thewave.com/lake-schedule/?date=2024-09-09"

    def test_custom_param(self):
        fetcher, _, _ = make_fetcher([], schedule_url="https://example.com/schedule", week_param="week")
        assert fetcher.week_url(date(2024, 9, 9)) == "https://example.com/schedule?week=2024-09-09"

    def test_browser_headers_installed(self):
        _, http, _ = make_fetcher([])
        assert http.headers["User-Agent"] == REQUEST_HEADERS["User-Agent"]


class TestFetch:
    def test_first_attempt_succeeds(self):
        fetcher, http, delays = make_fetcher([FakeResponse(text=GOOD_BODY)])
        result = fetcher.fetch(date(2024, 9, 12))
        assert result.html == GOOD_BODY
        assert result.attempts == 1
        assert not result.degraded
        assert delays == []
        assert http.calls == [("https://www.thewave.com/lake-schedule/?date=2024-09-09", 5.0)]

    def test_retries_after_server_error(self):
        fetcher, _, delays = make_fetcher([
            FakeResponse(status_code=503, reason="Service Unavailable"),
            FakeResponse(text=GOOD_BODY),
        ])
        result = fetcher.fetch(date(2024, 9, 9))
        assert result.attempts == 2
        assert delays == [0.5]

    def test_short_body_is_a_failure(self):
        fetcher, _, delays = make_fetcher([
            FakeResponse(text="<html></html>"),
            FakeResponse(text=GOOD_BODY),
        ])
        assert fetcher.fetch(date(2024, 9, 9)).attempts == 2

    def test_network_error_is_retried(self):
        fetcher, _, _ = make_fetcher([
            requests.ConnectionError("connection reset"),
            requests.Timeout("read timed out"),
            FakeResponse(text=GOOD_BODY),
        ])
        assert fetcher.fetch(date(2024, 9, 9)).attempts == 3

    def test_exhaustion_raises(self):
        fetcher, http, delays = make_fetcher([
            FakeResponse(status_code=500, reason="Server Error"),
            FakeResponse(status_code=500, reason="Server Error"),
            FakeResponse(status_code=404, reason="Not Found"),
        ])
        with pytest.raises(FetchExhausted) as excinfo:
            fetcher.fetch(date(2024, 9, 9))
        assert excinfo.value.attempts == 3
        assert "HTTP 404" in str(excinfo.value)
        assert len(http.calls) == 3
        assert delays == [0.5, 2.0]

    def test_backoff_is_quadratic(self):
        fetcher, _, delays = make_fetcher(
            [FakeResponse(status_code=500)] * 4, fetch_attempts=4,
        )
        with pytest.raises(FetchExhausted):
            fetcher.fetch(date(2024, 9, 9))
        assert delays == [0.5, 2.0, 4.5]

    def test_fallback_returns_sample_flagged_degraded(self):
        fetcher, _, _ = make_fetcher(
            [FakeResponse(status_code=500)] * 3, fallback_to_sample=True,
        )
        result = fetcher.fetch(date(2024, 9, 9))
        assert result.degraded
        assert result.html == sample_html(date(2024, 9, 9))
        assert result.attempts == 3
