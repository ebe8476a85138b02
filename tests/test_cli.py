"""Tests for the command-line entry points that work offline."""
import json
from datetime import date

import pytest

from wave_schedule import cli
from wave_schedule.schedule_fetch import FetchResult, sample_html
from wave_schedule.scraper import WaveScheduleScraper
from wave_schedule.store import SQLiteStore


@pytest.fixture
def db(tmp_path, make_session):
    path = tmp_path / "wave.db"
    with SQLiteStore(path) as store:
        store.upsert_sessions([make_session()])
    return str(path)


def test_users_load(tmp_path, db, capsys):
    users = tmp_path / "users.json"
    users.write_text(json.dumps([
        {"user_id": "42", "levels": ["expert"], "timing_offsets": ["24h"]},
        {"user_id": "43", "sides": ["R"]},
    ]))
    assert cli.main(["users", "--load", str(users), "--db", db]) == 0
    assert "Saved 2 user constraint set(s)" in capsys.readouterr().out
    with SQLiteStore(db) as store:
        assert [u.user_id for u in store.load_constraints()] == ["42", "43"]


def test_users_load_invalid(tmp_path, db, capsys):
    users = tmp_path / "users.json"
    users.write_text(json.dumps({"user_id": "42", "min_spots": 0}))
    assert cli.main(["users", "--load", str(users), "--db", db]) == 1
    assert "min_spots" in capsys.readouterr().err


def test_notify_dry_run(db, capsys):
    assert cli.main(["notify", "--db", db, "--dry-run"]) == 0
    assert "Sent 0" in capsys.readouterr().out


def test_digest_runs_without_users(db, capsys):
    assert cli.main(["digest", "--db", db]) == 0


def test_command_required():
    with pytest.raises(SystemExit):
        cli.main([])


# ── scrape / sessions with a stubbed schedule ────────────────────────


class StubFetcher:
    def __init__(self, pages, degraded=()):
        self.pages = pages
        self.degraded = set(degraded)

    def fetch(self, week_anchor):
        if week_anchor in self.degraded:
            return FetchResult(f"stub://{week_anchor}", sample_html(week_anchor), 3, degraded=True)
        html = self.pages.get(week_anchor, "<html><body>Session Calendar</body></html>")
        return FetchResult(f"stub://{week_anchor}", html, 1)


@pytest.fixture
def schedule(monkeypatch, page_html):
    pages = {
        date(2024, 9, 9): page_html([
            ("Thu 12th Sep", [("7:00am", [("Expert Barrels (L)", "8 spaces")])]),
            ("Fri 13th Sep", [("9:00am", [("Advanced Plus Surf (R)", "2 spaces")])]),
        ]),
    }

    def install(degraded=()):
        def factory(settings):
            return WaveScheduleScraper(settings, fetcher=StubFetcher(pages, degraded))
        monkeypatch.setattr(cli, "WaveScheduleScraper", factory)

    return install


def test_scrape_stores_and_marks_missing_sessions(db, schedule, make_session, capsys):
    schedule()
    with SQLiteStore(db) as store:
        store.upsert_sessions([
            make_session("2024-09-14", "07:00", "Cancelled Surf"),
            make_session("2024-09-20", "07:00", "Later Surf"),
        ])

    assert cli.main(["scrape", "--start", "2024-09-12", "--days", "3", "--db", db]) == 0
    assert "Stored 2 session(s); 1 marked inactive" in capsys.readouterr().out

    with SQLiteStore(db) as store:
        active = [(s.date_iso, s.session_name) for s in store.all_sessions()]
    assert active == [
        ("2024-09-11", "Expert Barrels (L)"),
        ("2024-09-12", "Expert Barrels (L)"),
        ("2024-09-13", "Advanced Plus Surf (R)"),
        ("2024-09-20", "Later Surf"),
    ]


def test_scrape_refuses_degraded_data(db, schedule, make_session, capsys):
    schedule(degraded=[date(2024, 9, 16)])

    assert cli.main(["scrape", "--start", "2024-09-12", "--days", "7", "--db", db]) == 1
    err = capsys.readouterr().err
    assert "sample data for week(s) 2024-09-16" in err
    assert "Refusing to store sample data." in err

    with SQLiteStore(db) as store:
        assert store.all_sessions() == [make_session()]


def test_sessions_min_spots(schedule, capsys):
    schedule()
    assert cli.main(["sessions", "--start", "2024-09-12", "--days", "3", "--min-spots", "5"]) == 0
    out = capsys.readouterr().out
    assert "Expert Barrels (L)" in out
    assert "Advanced Plus Surf (R)" not in out
    assert "1 session(s)" in out


def test_sessions_export_uses_configured_timezone(tmp_path, schedule, monkeypatch):
    schedule()
    monkeypatch.setenv("TIMEZONE", "America/New_York")
    out = tmp_path / "week"
    assert cli.main(["sessions", "--start", "2024-09-12", "--days", "3", "-f", "ics", "-o", str(out)]) == 0
    assert "DTSTART;TZID=America/New_York:20240912T070000" in (tmp_path / "week.ics").read_text()
