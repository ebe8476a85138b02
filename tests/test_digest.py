"""Tests for digest selection and paging."""
import pytest

from wave_schedule.digest import digest_days_for, paginate, select_digest_sessions
from wave_schedule.models import Level, Side, UserConstraintSet


class TestDigestDays:
    @pytest.mark.parametrize("timings, days", [
        (["1w", "2h"], 7),
        (["48h", "24h"], 2),
        (["24h"], 1),
        ([], 1),
    ])
    def test_longest_timing_wins(self, timings, days):
        assert digest_days_for(timings) == days


class TestSelect:
    def test_ignores_weekday_and_full_sessions(self, make_session):
        monday = make_session(date_iso="2024-09-09")
        wednesday = make_session(date_iso="2024-09-11")
        full = make_session(date_iso="2024-09-11", time24="09:00", spots=0)
        beginner = make_session(name="Play in the Bay", level=Level.BEGINNER, side=Side.ANY)
        user = UserConstraintSet("42", levels=["expert"], days=[0])
        assert select_digest_sessions([monday, wednesday, full, beginner], user) == [monday, wednesday]


class TestPaginate:
    def test_pages(self, make_session):
        sessions = [make_session(time24=f"{h:02d}:00") for h in range(6, 19)]
        page = paginate(sessions, page=2, per_page=5)
        assert (page.page, page.total_pages, page.total) == (2, 3, 13)
        assert [s.time24 for s in page.sessions] == ["11:00", "12:00", "13:00", "14:00", "15:00"]

    def test_page_clamped(self, make_session):
        sessions = [make_session(time24=f"{h:02d}:00") for h in range(6, 9)]
        assert paginate(sessions, page=9, per_page=2).page == 2
        assert paginate(sessions, page=0, per_page=2).page == 1

    def test_empty(self):
        page = paginate([])
        assert (page.sessions, page.page, page.total_pages, page.total) == ([], 1, 1, 0)

    def test_bad_page_size(self):
        with pytest.raises(ValueError):
            paginate([], per_page=0)
