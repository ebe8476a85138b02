"""
SQLite-backed store for sessions, user constraint sets and the
notification ledger.

The ledger's UNIQUE(user_id, session_id, timing) constraint is what makes
delivery at-most-once: a second insert for the same triple is ignored and
reported as "already sent".
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, List

from .models import Level, NotificationRecord, Session, Side, Timing, UserConstraintSet

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    date_iso TEXT NOT NULL,
    time24 TEXT NOT NULL,
    session_name TEXT NOT NULL,
    level TEXT NOT NULL,
    side TEXT NOT NULL,
    spots_available INTEGER NOT NULL,
    booking_url TEXT NOT NULL DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_sessions_start ON sessions(date_iso, time24);

CREATE TABLE IF NOT EXISTS user_constraints (
    user_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notifications_sent (
    user_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    timing TEXT NOT NULL,
    sent_at TEXT NOT NULL,
    UNIQUE (user_id, session_id, timing)
);
"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        date_iso=row["date_iso"],
        time24=row["time24"],
        session_name=row["session_name"],
        level=Level(row["level"]),
        side=Side.parse(row["side"]),
        spots_available=row["spots_available"],
        booking_url=row["booking_url"],
    )


class SQLiteStore:
    def __init__(self, path: str | Path = ":memory:"):
        self.path = str(path)
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ── sessions ─────────────────────────────────────────────────

    def upsert_sessions(self, sessions: Iterable[Session]) -> int:
        now = _utc_now()
        rows = [
            (
                s.session_id, s.date_iso, s.time24, s.session_name, s.level.value,
                s.side.value, s.spots_available, s.booking_url, now,
            )
            for s in sessions
        ]
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO sessions (id, date_iso, time24, session_name, level, side,
                                      spots_available, booking_url, is_active, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                ON CONFLICT(id) DO UPDATE SET
                    level=excluded.level,
                    side=excluded.side,
                    spots_available=excluded.spots_available,
                    booking_url=excluded.booking_url,
                    is_active=1,
                    updated_at=excluded.updated_at
                """,
                rows,
            )
        logger.info("Upserted %d session(s)", len(rows))
        return len(rows)

    def mark_stale(self, observed: Iterable[Session], start: date, end: date) -> int:
        """Deactivate sessions in [start, end] that the latest scrape did not see."""
        observed_ids = {s.session_id for s in observed}
        with self.conn:
            rows = self.conn.execute(
                "SELECT id FROM sessions WHERE is_active = 1 AND date_iso BETWEEN ? AND ?",
                (start.isoformat(), end.isoformat()),
            ).fetchall()
            stale = [(_utc_now(), r["id"]) for r in rows if r["id"] not in observed_ids]
            self.conn.executemany(
                "UPDATE sessions SET is_active = 0, updated_at = ? WHERE id = ?", stale
            )
        if stale:
            logger.info("Marked %d session(s) inactive", len(stale))
        return len(stale)

    def find_sessions_between(self, start_key: str, end_key: str) -> List[Session]:
        """Active sessions with spots left whose 'YYYY-MM-DD HH:MM' start is in [start_key, end_key]."""
        rows = self.conn.execute(
            """
            SELECT * FROM sessions
            WHERE is_active = 1
              AND spots_available > 0
              AND (date_iso || ' ' || time24) BETWEEN ? AND ?
            ORDER BY date_iso, time24
            """,
            (start_key, end_key),
        ).fetchall()
        return [_row_to_session(r) for r in rows]

    def all_sessions(self, active_only: bool = True) -> List[Session]:
        query = "SELECT * FROM sessions"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY date_iso, time24"
        return [_row_to_session(r) for r in self.conn.execute(query).fetchall()]

    # ── users ────────────────────────────────────────────────────

    def save_constraints(self, constraints: UserConstraintSet) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO user_constraints (user_id, payload, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at
                """,
                (constraints.user_id, json.dumps(constraints.to_dict()), _utc_now()),
            )

    def load_constraints(self) -> List[UserConstraintSet]:
        rows = self.conn.execute(
            "SELECT payload FROM user_constraints ORDER BY user_id"
        ).fetchall()
        return [UserConstraintSet.from_dict(json.loads(r["payload"])) for r in rows]

    # ── ledger ───────────────────────────────────────────────────

    def has_notification(self, user_id: str, session_id: str, timing: Timing) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM notifications_sent WHERE user_id = ? AND session_id = ? AND timing = ?",
            (user_id, session_id, Timing(timing).value),
        ).fetchone()
        return row is not None

    def record_notification(self, record: NotificationRecord) -> bool:
        """Insert a ledger row; False if one already existed for the triple."""
        with self.conn:
            cur = self.conn.execute(
                """
                INSERT OR IGNORE INTO notifications_sent (user_id, session_id, timing, sent_at)
                VALUES (?, ?, ?, ?)
                """,
                (record.user_id, record.session_id, record.timing.value, record.sent_at.isoformat()),
            )
        return cur.rowcount == 1

    def notification_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM notifications_sent").fetchone()[0]
