"""
Export sessions to ICS, CSV, and JSON.
"""
from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

import icalendar
import pytz

from .config import DEFAULT_TIMEZONE
from .models import Session, sessions_to_dicts

CSV_FIELDS = (
    "dateISO", "time24", "sessionName", "level", "side",
    "spotsAvailable", "isFull", "bookingUrl",
)


def export_ics(sessions: list[Session], out_path: str | Path, tz_name: str = DEFAULT_TIMEZONE) -> None:
    """Export sessions to iCalendar (.ics), one event per session start."""
    cal = icalendar.Calendar()
    cal.add("prodid", "-//Wave Lake Schedule//EN")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", "The Wave Lake Schedule")
    cal.add("x-wr-timezone", tz_name)

    local_tz = pytz.timezone(tz_name)
    for s in sessions:
        event = icalendar.Event()
        event.add("uid", f"{s.session_id}@wave-schedule")
        event.add("summary", s.session_name)

        status = "Fully booked" if s.is_full else f"{s.spots_available} spaces"
        event.add("description", f"Level: {s.level.value}\nSide: {s.side.value}\n{status}")
        if s.booking_url:
            event.add("url", s.booking_url)

        event.add("dtstart", local_tz.localize(s.starts_at()))
        event.add("dtstamp", datetime.now(timezone.utc))
        cal.add_component(event)

    Path(out_path).write_text(cal.to_ical().decode("utf-8"), encoding="utf-8")


def export_csv(sessions: list[Session], out_path: str | Path) -> None:
    """Export sessions to CSV; the header row is written even when there are none."""
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS, extrasaction="ignore")
        w.writeheader()
        w.writerows(sessions_to_dicts(sessions))


def export_json(sessions: list[Session], out_path: str | Path) -> None:
    """Export sessions to JSON."""
    Path(out_path).write_text(
        json.dumps(sessions_to_dicts(sessions), indent=2, ensure_ascii=False), encoding="utf-8"
    )


def export(
    sessions: list[Session],
    out_path: str | Path,
    fmt: str,
    tz_name: str = DEFAULT_TIMEZONE,
) -> None:
    """Export to the given format: ics, csv, or json. tz_name applies to ics only."""
    fmt = fmt.lower()
    if fmt == "ics":
        export_ics(sessions, out_path, tz_name)
    elif fmt == "csv":
        export_csv(sessions, out_path)
    elif fmt == "json":
        export_json(sessions, out_path)
    else:
        raise ValueError(f"Unsupported format: {fmt}. Use ics, csv, or json.")
