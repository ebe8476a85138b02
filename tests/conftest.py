import pytest

from wave_schedule.models import Level, Session, Side


def _page_html(days: list[tuple[str, list[tuple[str, list[tuple[str, str]]]]]]) -> str:
    """
    Build a minimal schedule page.
    days: [(day_label, [(time_label, [(name, availability), ...]), ...]), ...]
    """
    parts = ["<html><body>", "<h2>Session Calendar</h2>"]
    for day_label, times in days:
        parts.append(f"<div class='day'>{day_label}</div>")
        for time_label, slots in times:
            parts.append(f"<div class='time'>{time_label}</div>")
            for name, availability in slots:
                parts.append(f"<div class='name'>{name}</div>")
                parts.append(f"<div class='spaces'>{availability}</div>")
    parts.append("</body></html>")
    return "\n".join(parts)


@pytest.fixture
def page_html():
    return _page_html


@pytest.fixture
def make_session():
    def _make(
        date_iso="2024-09-11",
        time24="07:00",
        name="Expert Barrels (L)",
        level=Level.EXPERT,
        side=Side.LEFT,
        spots=8,
    ):
        return Session(
            date_iso=date_iso,
            time24=time24,
            session_name=name,
            level=level,
            side=side,
            spots_available=spots,
            booking_url="https://www.thewave.com/book/",
        )
    return _make
