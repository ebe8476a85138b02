"""
Parse The Wave "Lake Schedule" page HTML into session records.

The page carries no useful markup for the calendar, so everything works on
the flattened body text:

    Session Calendar
    Thu 11th Sep            <- day header (sometimes "Thu" / "11th Sep")
    7:00am                  <- time header
    Expert Barrels (L)      <- session name
    8 spaces                <- availability ("N space(s)" or "Fully Booked")
    Expert Barrels (R) Fully Booked   <- name + availability on one line

Pipeline: lex_lines() -> tokenize() -> parse_lines() -> build_session()
-> dedupe_sessions().
"""
from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional

from bs4 import BeautifulSoup

from .errors import ParseAnomaly
from .models import Level, RawEntry, Session, Side

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Patterns and tables
# ──────────────────────────────────────────────────────────────────

CALENDAR_MARKERS = ("session calendar", "schedule", "timetable")

BLOCK_TAGS = (
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "footer", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main",
    "nav", "ol", "p", "section", "table", "td", "th", "tr", "ul",
)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_MONTH_MAP = {m.lower(): i for i, m in enumerate(_MONTHS, start=1)}

_DAY_HEADER_RE = re.compile(
    r"\b(Mon|Tue|Wed|Thu|Fri|Sat|Sun)\s+(\d{1,2})(?:st|nd|rd|th)\s+"
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\b",
    re.I,
)
_WEEKDAY_ONLY_RE = re.compile(r"^(Mon|Tue|Wed|Thu|Fri|Sat|Sun)$", re.I)
_TIME_HEADER_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([ap]m)$", re.I)
_AVAILABILITY_RE = re.compile(r"^(?:\d+\s+spaces?|Fully Booked)$", re.I)
_INLINE_AVAILABILITY_RE = re.compile(r"\s*\b(\d+\s+spaces?|Fully Booked)\b.*$", re.I)
_SPOTS_RE = re.compile(r"(\d+)\s+spaces?", re.I)
_SIDE_RE = re.compile(r"\(([LR])\)", re.I)

# Most specific keyword first; the first hit wins.
LEVEL_KEYWORDS: tuple[tuple[str, Level], ...] = (
    ("expert barrels", Level.EXPERT),
    ("expert turns", Level.EXPERT),
    ("expert", Level.EXPERT),
    ("advanced plus", Level.ADVANCED),
    ("advanced", Level.ADVANCED),
    ("intermediate", Level.INTERMEDIATE),
    ("improver", Level.IMPROVER),
    ("beginner", Level.BEGINNER),
    ("play in the bay", Level.BEGINNER),
    ("little rippers", Level.BEGINNER),
)
DEFAULT_LEVEL = Level.INTERMEDIATE

MIN_NAME_LENGTH = 3


# ──────────────────────────────────────────────────────────────────
#  Lexer
# ──────────────────────────────────────────────────────────────────

def lex_lines(html: str) -> List[str]:
    """
    Reduce HTML to its visible text, one trimmed non-empty line per entry.

    Lines break at newlines in the source and around block-level elements;
    inline markup such as <span>(L)</span> stays on its line.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for tag in soup.find_all(BLOCK_TAGS):
        if tag.name == "br":
            tag.replace_with("\n")
            continue
        tag.insert_before("\n")
        tag.append("\n")
    root = soup.body or soup
    text = root.get_text()
    lines = []
    for raw in text.split("\n"):
        line = re.sub(r"\s+", " ", raw).strip()
        if line:
            lines.append(line)
    return lines


class TokenKind(Enum):
    DAY_HEADER = "day_header"
    WEEKDAY = "weekday"
    TIME_HEADER = "time_header"
    AVAILABILITY = "availability"
    INLINE_ENTRY = "inline_entry"
    TEXT = "text"


class Token(NamedTuple):
    kind: TokenKind
    text: str


def classify_line(line: str) -> Token:
    if _DAY_HEADER_RE.search(line):
        return Token(TokenKind.DAY_HEADER, line)
    if _WEEKDAY_ONLY_RE.match(line):
        return Token(TokenKind.WEEKDAY, line)
    if _TIME_HEADER_RE.match(line):
        return Token(TokenKind.TIME_HEADER, line)
    if _AVAILABILITY_RE.match(line):
        return Token(TokenKind.AVAILABILITY, line)
    if _INLINE_AVAILABILITY_RE.search(line):
        return Token(TokenKind.INLINE_ENTRY, line)
    return Token(TokenKind.TEXT, line)


def tokenize(lines: Iterable[str]) -> List[Token]:
    return [classify_line(line) for line in lines]


def _day_label(text: str) -> Optional[str]:
    """Canonical 'Thu 11th Sep' form of the first day header in text."""
    m = _DAY_HEADER_RE.search(text)
    if not m:
        return None
    return re.sub(r"\s+", " ", m.group(0)).strip()


def _split_day_header(tokens: List[Token], i: int) -> tuple[Optional[str], int]:
    """
    Try to build a day header from a bare weekday at tokens[i] plus the one
    or two lines after it ("Thu" / "11th Sep" or "Thu" / "11th" / "Sep").
    Returns (label, tokens consumed).
    """
    for extra in (1, 2):
        if i + extra >= len(tokens):
            break
        combined = " ".join(t.text for t in tokens[i:i + extra + 1])
        m = _DAY_HEADER_RE.match(combined)
        if m and m.end() == len(combined):
            return _day_label(combined), extra + 1
    return None, 1


def _has_calendar_marker(lines: Iterable[str]) -> bool:
    return any(marker in line.lower() for line in lines for marker in CALENDAR_MARKERS)


# ──────────────────────────────────────────────────────────────────
#  Parser
# ──────────────────────────────────────────────────────────────────

class ParserState(Enum):
    SEEKING_CALENDAR = "seeking_calendar"
    SEEKING_DAY = "seeking_day"
    HAVE_DAY = "have_day"
    HAVE_TIME = "have_time"


class ScheduleParser:
    """
    Line-stream state machine producing RawEntry tuples.

    Never raises on odd input: lines it cannot use are skipped. A stream
    without any calendar marker yields no entries.
    """

    def __init__(self, lines: Iterable[str]):
        self.tokens = tokenize(lines)
        self.state = ParserState.SEEKING_CALENDAR
        self.day_label: Optional[str] = None
        self.time_label: Optional[str] = None
        self.days_seen: List[str] = []
        self.entries: List[RawEntry] = []

    def parse(self) -> List[RawEntry]:
        if not _has_calendar_marker(t.text for t in self.tokens):
            logger.info("No calendar content found on page")
            return []
        self.state = ParserState.SEEKING_DAY

        i = 0
        while i < len(self.tokens):
            i += self._step(i)

        logger.debug("Found days: %s", ", ".join(self.days_seen))
        logger.info("Parsed %d raw entries across %d day(s)", len(self.entries), len(self.days_seen))
        return self.entries

    def _enter_day(self, label: str) -> None:
        self.day_label = label
        self.time_label = None
        self.days_seen.append(label)
        self.state = ParserState.HAVE_DAY

    def _day_header_at(self, i: int) -> tuple[Optional[str], int]:
        token = self.tokens[i]
        if token.kind is TokenKind.DAY_HEADER:
            return _day_label(token.text), 1
        if token.kind is TokenKind.WEEKDAY:
            return _split_day_header(self.tokens, i)
        return None, 1

    def _step(self, i: int) -> int:
        """Handle the token at i; return how many tokens were consumed."""
        label, used = self._day_header_at(i)
        if label:
            self._enter_day(label)
            return used

        token = self.tokens[i]
        if self.state is ParserState.SEEKING_DAY:
            return 1

        if token.kind is TokenKind.TIME_HEADER:
            self.time_label = token.text
            self.state = ParserState.HAVE_TIME
            return 1

        if self.state is not ParserState.HAVE_TIME:
            return 1

        return self._consume_entry(i)

    def _consume_entry(self, i: int) -> int:
        token = self.tokens[i]
        nxt = self.tokens[i + 1] if i + 1 < len(self.tokens) else None

        if token.kind is TokenKind.TEXT and nxt and nxt.kind is TokenKind.AVAILABILITY:
            self._emit(token.text, nxt.text)
            return 2

        if token.kind is TokenKind.INLINE_ENTRY:
            m = _INLINE_AVAILABILITY_RE.search(token.text)
            name = token.text[:m.start()]
            self._emit(name, m.group(1))
            return 1

        logger.debug("Skipping line under %s %s: %r", self.day_label, self.time_label, token.text)
        return 1

    def _emit(self, name: str, availability: str) -> None:
        self.entries.append(RawEntry(self.day_label, self.time_label, name.strip(), availability.strip()))


def parse_lines(lines: Iterable[str], week_anchor: date | None = None) -> List[RawEntry]:
    """
    Scan a line stream for (day, time, name, availability) tuples.

    week_anchor is accepted for symmetry with build_session(); the parser
    itself does no date arithmetic.
    """
    return ScheduleParser(lines).parse()


# ──────────────────────────────────────────────────────────────────
#  Normalizer
# ──────────────────────────────────────────────────────────────────

def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def format_day_label(day: date) -> str:
    """date(2025, 9, 11) -> 'Thu 11th Sep' (the page's own header format)."""
    n = day.day
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{_WEEKDAYS[day.weekday()]} {n}{suffix} {_MONTHS[day.month - 1]}"


def resolve_day_label(label: str, week_anchor: date) -> date:
    """
    Resolve 'Thu 11th Sep' to a calendar date using the week's Monday.

    The year comes from the anchor, not from today, so a page fetched for a
    future week resolves correctly. For a week straddling New Year, a
    January label under a December anchor moves to the following year (and
    the reverse for a December label under a January anchor). The weekday
    name in the label is not checked against the result.

    An older single-week approach guessed the year from today's date and
    rolled it forward when the result fell more than three months in the
    past; that breaks for range queries that span a year boundary.
    """
    m = _DAY_HEADER_RE.search(label or "")
    if not m:
        raise ParseAnomaly(f"Invalid day label: {label!r}")
    day_num = int(m.group(2))
    month = _MONTH_MAP[m.group(3).lower()]

    year = week_anchor.year
    if month == 1 and week_anchor.month == 12:
        year += 1
    elif month == 12 and week_anchor.month == 1:
        year -= 1
    try:
        return date(year, month, day_num)
    except ValueError as exc:
        raise ParseAnomaly(f"Invalid day label: {label!r} ({exc})") from exc


def to_24h(label: str) -> str:
    """'7:00am' -> '07:00', '12:30pm' -> '12:30', '12:00am' -> '00:00'."""
    m = _TIME_HEADER_RE.match((label or "").strip())
    if not m:
        raise ParseAnomaly(f"Invalid time label: {label!r}")
    hour, minute, ap = int(m.group(1)), int(m.group(2)), m.group(3).lower()
    if hour > 12 or minute > 59:
        raise ParseAnomaly(f"Invalid time label: {label!r}")
    if ap == "am" and hour == 12:
        hour = 0
    elif ap == "pm" and hour != 12:
        hour += 12
    return f"{hour:02d}:{minute:02d}"


def extract_side(name: str) -> Side:
    m = _SIDE_RE.search(name)
    if not m:
        return Side.ANY
    return Side.LEFT if m.group(1).upper() == "L" else Side.RIGHT


def classify_level(name: str) -> Level:
    lowered = name.lower()
    for keyword, level in LEVEL_KEYWORDS:
        if keyword in lowered:
            return level
    return DEFAULT_LEVEL


def parse_spots(availability: str) -> int:
    """'Fully Booked' -> 0, '8 spaces' -> 8, anything else -> 0."""
    if re.search(r"fully booked", availability or "", re.I):
        return 0
    m = _SPOTS_RE.search(availability or "")
    return int(m.group(1)) if m else 0


def build_session(
    entry: RawEntry,
    week_anchor: date,
    booking_url: str = "",
) -> Optional[Session]:
    """Turn one RawEntry into a Session, or None if it is noise."""
    name = re.sub(r"\s+", " ", entry.name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        return None
    try:
        day = resolve_day_label(entry.day_label, week_anchor)
        time24 = to_24h(entry.time_label)
    except ParseAnomaly as exc:
        logger.debug("Dropping entry %r: %s", entry, exc)
        return None

    return Session(
        date_iso=day.isoformat(),
        time24=time24,
        session_name=name,
        level=classify_level(name),
        side=extract_side(name),
        spots_available=parse_spots(entry.availability),
        booking_url=booking_url,
    )


def dedupe_sessions(sessions: Iterable[Session]) -> List[Session]:
    """Keep the first session per (date, time, name); sort by date then time."""
    seen: set[tuple[str, str, str]] = set()
    unique: List[Session] = []
    for s in sessions:
        if s.key in seen:
            continue
        seen.add(s.key)
        unique.append(s)
    return sorted(unique, key=lambda s: (s.date_iso, s.time24))


# ──────────────────────────────────────────────────────────────────
#  Public API
# ──────────────────────────────────────────────────────────────────

def parse_schedule_html(
    html: str,
    week_anchor: date,
    booking_url: str = "",
) -> List[Session]:
    """
    Parse one week's schedule page into deduplicated, sorted sessions.

    :param html: Raw page HTML.
    :param week_anchor: Any date in the page's week; its Monday is used.
    :param booking_url: Link stored on every session.
    :returns: Sessions; empty if the page has no recognisable calendar.
    """
    anchor = monday_of(week_anchor)
    entries = parse_lines(lex_lines(html), anchor)
    sessions = []
    for entry in entries:
        session = build_session(entry, anchor, booking_url)
        if session is not None:
            sessions.append(session)
    return dedupe_sessions(sessions)
