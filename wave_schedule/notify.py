"""
Cron-driven session alerts.

For every timing offset (1w, 48h, 24h, 12h, 2h) a run looks for sessions
starting within +/- tolerance of now + offset, works out which users want
that session at that offset, and sends each of them one alert. The ledger
guarantees at most one alert per (user, session, offset) across runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Protocol

import pytz
import requests

from .config import Settings
from .errors import DeliveryFailure
from .filters import matches_constraints
from .models import NotificationRecord, Session, Timing, UserConstraintSet
from .store import SQLiteStore

logger = logging.getLogger(__name__)

ALL_TIMINGS = tuple(Timing)

# Local wall-clock keys can run backwards across a DST change; the store query
# is widened by this much and the exact bounds are checked in UTC.
QUERY_PAD = timedelta(hours=1)


# ──────────────────────────────────────────────────────────────────
#  Transport
# ──────────────────────────────────────────────────────────────────

class Sender(Protocol):
    def send(self, user_id: str, message: str) -> bool: ...


class TelegramSender:
    """Sends plain-text messages through the Telegram Bot API; user id is the chat id."""

    def __init__(self, token: str, http: Optional[requests.Session] = None, timeout: float = 10.0):
        if not token:
            raise ValueError("TELEGRAM_BOT_TOKEN is not set")
        self.url = f"https://api.telegram.org/bot{token}/sendMessage"
        self.http = http or requests.Session()
        self.timeout = timeout

    def send(self, user_id: str, message: str) -> bool:
        res = self.http.post(
            self.url,
            json={"chat_id": user_id, "text": message, "disable_web_page_preview": True},
            timeout=self.timeout,
        )
        if res.status_code != 200:
            logger.error("Telegram send failed HTTP %d: %r", res.status_code, res.text[:300])
            return False
        return True


class LogSender:
    """Dry-run transport: logs instead of sending."""

    def send(self, user_id: str, message: str) -> bool:
        logger.info("[dry-run] to %s: %s", user_id, message.replace("\n", " | "))
        return True


def format_alert(session: Session, timing: Timing) -> str:
    lines = [
        f"Wave alert - {timing.label} notice",
        f"{session.date_iso} {session.time24}  {session.session_name}",
        f"Level: {session.level.value}  Side: {session.side.value}",
        f"Spaces available: {session.spots_available}",
    ]
    if session.booking_url:
        lines.append(f"Book: {session.booking_url}")
    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────
#  Windower
# ──────────────────────────────────────────────────────────────────

@dataclass
class WindowerReport:
    sent: int = 0
    skipped: int = 0
    already_recorded: int = 0
    failures: List[DeliveryFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class NotificationWindower:
    def __init__(
        self,
        store: SQLiteStore,
        sender: Sender,
        settings: Settings | None = None,
        timings: Iterable[Timing] = ALL_TIMINGS,
    ):
        self.store = store
        self.sender = sender
        self.settings = settings or Settings()
        self.tz = self.settings.timezone
        self.timings = tuple(Timing(t) for t in timings)
        self.tolerance = timedelta(minutes=self.settings.tolerance_minutes)

    def _to_utc(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = self.tz.localize(moment)
        return moment.astimezone(pytz.utc)

    def _local_key(self, moment_utc: datetime) -> str:
        return moment_utc.astimezone(self.tz).strftime("%Y-%m-%d %H:%M")

    def session_start_utc(self, session: Session) -> datetime:
        return self.tz.localize(session.starts_at()).astimezone(pytz.utc)

    def window(self, timing: Timing, now: datetime) -> tuple[datetime, datetime]:
        """[target - tolerance, target + tolerance] in UTC, target = now + offset."""
        target = self._to_utc(now) + timing.delta
        return target - self.tolerance, target + self.tolerance

    def in_window(self, session: Session, timing: Timing, now: datetime) -> bool:
        start, end = self.window(timing, now)
        return start <= self.session_start_utc(session) <= end

    def sessions_in_window(self, timing: Timing, now: datetime) -> List[Session]:
        start, end = self.window(timing, now)
        candidates = self.store.find_sessions_between(
            self._local_key(start - QUERY_PAD), self._local_key(end + QUERY_PAD)
        )
        return [s for s in candidates if start <= self.session_start_utc(s) <= end]

    @staticmethod
    def eligible_users(
        session: Session,
        timing: Timing,
        users: Iterable[UserConstraintSet],
    ) -> List[UserConstraintSet]:
        return [
            u for u in users
            if timing in u.timing_offsets and matches_constraints(session, u)
        ]

    def _deliver(self, user: UserConstraintSet, session: Session, timing: Timing, report: WindowerReport) -> None:
        if self.store.has_notification(user.user_id, session.session_id, timing):
            report.skipped += 1
            return

        try:
            ok = self.sender.send(user.user_id, format_alert(session, timing))
            if not ok:
                raise DeliveryFailure(user.user_id, session.session_id, "transport refused message")
        except DeliveryFailure as exc:
            logger.error("%s", exc)
            report.failures.append(exc)
            return
        except Exception as exc:
            logger.exception("Delivery to %s for %s crashed", user.user_id, session.session_name)
            report.failures.append(DeliveryFailure(user.user_id, session.session_id, str(exc)))
            return

        record = NotificationRecord(
            user_id=user.user_id,
            session_id=session.session_id,
            timing=timing,
            sent_at=datetime.now(timezone.utc),
        )
        if self.store.record_notification(record):
            report.sent += 1
            logger.info(
                "Sent %s alert to %s for %s %s", timing.value, user.user_id,
                session.start_key, session.session_name,
            )
        else:
            # Another run recorded it between our check and insert.
            report.already_recorded += 1
            logger.warning(
                "Ledger already had %s/%s/%s; treating as sent",
                user.user_id, session.session_id, timing.value,
            )

    def run(self, now: datetime | None = None) -> WindowerReport:
        now = now or datetime.now(timezone.utc)
        report = WindowerReport()
        users = self.store.load_constraints()

        for timing in self.timings:
            sessions = self.sessions_in_window(timing, now)
            if not sessions:
                continue
            logger.info("Processing %d session(s) for %s notifications", len(sessions), timing.value)

            for session in sessions:
                eligible = self.eligible_users(session, timing, users)
                if eligible:
                    logger.info(
                        "Found %d matching user(s) for %s", len(eligible), session.session_name
                    )
                for user in eligible:
                    self._deliver(user, session, timing, report)

        logger.info(
            "Notification run done: %d sent, %d skipped, %d failed",
            report.sent, report.skipped, report.failed,
        )
        return report
