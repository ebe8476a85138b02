"""Tests for the multi-week scraper: range clipping, single dates and degraded reports."""
from datetime import date, datetime

import pytest

from wave_schedule.config import Settings
from wave_schedule.errors import NoSessionsForDate
from wave_schedule.schedule_fetch import FetchResult, sample_html
from wave_schedule.scraper import WaveScheduleScraper, week_anchors

EMPTY_PAGE = "<html><body><h2>Session Calendar</h2></body></html>"


class FakeFetcher:
    def __init__(self, pages, degraded=()):
        self.pages = pages
        self.degraded = set(degraded)
        self.fetched = []

    def fetch(self, week_anchor):
        self.fetched.append(week_anchor)
        if week_anchor in self.degraded:
            return FetchResult(url=f"fake://{week_anchor}", html=sample_html(week_anchor), attempts=3, degraded=True)
        html = self.pages.get(week_anchor, EMPTY_PAGE)
        return FetchResult(url=f"fake://{week_anchor}", html=html, attempts=1)


@pytest.fixture
def two_weeks(page_html):
    return {
        date(2024, 9, 9): page_html([
            ("Mon 9th Sep", [("7:00am", [("Early Week Surf", "4 spaces")])]),
            ("Thu 12th Sep", [
                ("7:00am", [("Expert Barrels (L)", "8 spaces")]),
                ("5:00pm", [("Improver Lesson (R)", "Fully Booked")]),
            ]),
        ]),
        date(2024, 9, 16): page_html([
            ("Mon 16th Sep", [("9:00am", [("Advanced Plus Surf (R)", "2 spaces")])]),
            ("Sat 21st Sep", [("9:00am", [("Weekend Surf", "6 spaces")])]),
        ]),
    }


def make_scraper(fetcher, workers=1):
    return WaveScheduleScraper(Settings(fetch_workers=workers), fetcher=fetcher)


class TestWeekAnchors:
    def test_span_two_weeks(self):
        assert week_anchors(date(2024, 9, 12), date(2024, 9, 20)) == [date(2024, 9, 9), date(2024, 9, 16)]

    def test_single_day(self):
        assert week_anchors(date(2024, 9, 15), date(2024, 9, 15)) == [date(2024, 9, 9)]

    def test_across_new_year(self):
        assert week_anchors(date(2025, 12, 30), date(2026, 1, 6)) == [date(2025, 12, 29), date(2026, 1, 5)]


class TestSessionsInRange:
    def test_clips_to_window(self, two_weeks):
        fetcher = FakeFetcher(two_weeks)
        sessions = make_scraper(fetcher).get_sessions_in_range(5, date(2024, 9, 12))
        assert [(s.date_iso, s.session_name) for s in sessions] == [
            ("2024-09-12", "Expert Barrels (L)"),
            ("2024-09-12", "Improver Lesson (R)"),
            ("2024-09-16", "Advanced Plus Surf (R)"),
        ]
        assert fetcher.fetched == [date(2024, 9, 9), date(2024, 9, 16)]

    def test_datetime_start_excludes_earlier_sessions(self, two_weeks):
        sessions = make_scraper(FakeFetcher(two_weeks)).get_sessions_in_range(
            0, datetime(2024, 9, 12, 12, 0)
        )
        assert [s.session_name for s in sessions] == ["Improver Lesson (R)"]

    def test_parallel_matches_sequential(self, two_weeks):
        seq = make_scraper(FakeFetcher(two_weeks)).get_sessions_in_range(12, date(2024, 9, 9))
        par = make_scraper(FakeFetcher(two_weeks), workers=4).get_sessions_in_range(12, date(2024, 9, 9))
        assert seq == par
        assert len(seq) == 5

    def test_year_boundary(self, page_html):
        pages = {
            date(2025, 12, 29): page_html([
                ("Wed 31st Dec", [("9:00am", [("Last Surf Of The Year", "3 spaces")])]),
                ("Thu 1st Jan", [("9:00am", [("First Surf Of The Year", "3 spaces")])]),
            ]),
        }
        sessions = make_scraper(FakeFetcher(pages)).get_sessions_in_range(3, date(2025, 12, 30))
        assert [s.date_iso for s in sessions] == ["2025-12-31", "2026-01-01"]

    def test_negative_days_rejected(self, two_weeks):
        with pytest.raises(ValueError):
            make_scraper(FakeFetcher(two_weeks)).get_sessions_in_range(-1, date(2024, 9, 9))

    def test_report_counts_attempts(self, two_weeks):
        scraper = make_scraper(FakeFetcher(two_weeks))
        scraper.get_sessions_in_range(7, date(2024, 9, 9))
        assert scraper.last_report.weeks == [date(2024, 9, 9), date(2024, 9, 16)]
        assert scraper.last_report.attempts == 2
        assert not scraper.last_report.degraded

    def test_degraded_week_reported(self, two_weeks):
        scraper = make_scraper(FakeFetcher(two_weeks, degraded=[date(2024, 9, 16)]))
        scraper.get_sessions_in_range(7, date(2024, 9, 9))
        assert scraper.last_report.degraded
        assert scraper.last_report.degraded_weeks == [date(2024, 9, 16)]

    def test_degraded_week_still_answers_any_day(self):
        scraper = make_scraper(FakeFetcher({}, degraded=[date(2024, 9, 9)]))
        sessions = scraper.get_sessions_for_date(date(2024, 9, 14))
        assert len(sessions) == 11
        assert {s.date_iso for s in sessions} == {"2024-09-14"}
        assert scraper.last_report.degraded


class TestSessionsForDate:
    def test_returns_that_day_only(self, two_weeks):
        sessions = make_scraper(FakeFetcher(two_weeks)).get_sessions_for_date(date(2024, 9, 12))
        assert {s.date_iso for s in sessions} == {"2024-09-12"}
        assert len(sessions) == 2

    def test_missing_day_lists_available_labels(self, two_weeks):
        with pytest.raises(NoSessionsForDate) as excinfo:
            make_scraper(FakeFetcher(two_weeks)).get_sessions_for_date(date(2024, 9, 10))
        assert excinfo.value.label == "Tue 10th Sep"
        assert excinfo.value.available_labels == ["Mon 9th Sep", "Thu 12th Sep"]
        assert "Thu 12th Sep" in str(excinfo.value)

    def test_empty_week_returns_empty(self):
        assert make_scraper(FakeFetcher({})).get_sessions_for_date(date(2024, 9, 10)) == []
