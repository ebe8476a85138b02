"""
Command-line interface: query the Lake Schedule, sync it into the store,
and run the notification windower (typically from cron).
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

from . import __version__
from .config import Settings, get_settings
from .digest import DEFAULT_PAGE_SIZE, digest_days_for, paginate, select_digest_sessions
from .errors import WaveScheduleError
from .export import export
from .filters import filter_sessions_for_user
from .models import Level, Session, Side, UserConstraintSet
from .notify import LogSender, NotificationWindower, TelegramSender
from .scraper import WaveScheduleScraper
from .store import SQLiteStore


def _print_sessions(sessions: list[Session]) -> None:
    current = ""
    for s in sessions:
        if s.date_iso != current:
            print(f"\n{s.date_iso}")
            current = s.date_iso
        status = "Fully booked" if s.is_full else f"{s.spots_available} spaces"
        print(f"  {s.time24}  {s.session_name:<32} {s.level.value:<12} {s.side.value:<5} {status}")


def _warn_if_degraded(scraper: WaveScheduleScraper) -> None:
    report = scraper.last_report
    if report.degraded:
        weeks = ", ".join(d.isoformat() for d in report.degraded_weeks)
        print(f"Warning: schedule unavailable, showing sample data for week(s) {weeks}", file=sys.stderr)


def cmd_sessions(args, settings: Settings) -> int:
    scraper = WaveScheduleScraper(settings)
    if args.today:
        sessions = scraper.get_todays_sessions()
    elif args.tomorrow:
        sessions = scraper.get_tomorrows_sessions()
    elif args.date:
        sessions = scraper.get_sessions_for_date(date.fromisoformat(args.date))
    else:
        start = date.fromisoformat(args.start) if args.start else None
        sessions = scraper.get_sessions_in_range(args.days, start)
    _warn_if_degraded(scraper)

    sessions = filter_sessions_for_user(
        sessions,
        levels=args.level or (),
        sides=args.side or (),
        skip_day_filter=True,
    )
    sessions = [s for s in sessions if s.spots_available >= args.min_spots]

    if args.format:
        ext = "." + args.format
        out_path = Path(args.output).with_suffix(ext) if Path(args.output).suffix else Path(args.output + ext)
        export(sessions, out_path, args.format, settings.timezone.zone)
        print(f"Exported {len(sessions)} session(s) to {out_path}")
    else:
        _print_sessions(sessions)
        print(f"\n{len(sessions)} session(s)")
    return 0


def cmd_scrape(args, settings: Settings) -> int:
    scraper = WaveScheduleScraper(settings)
    start = date.fromisoformat(args.start) if args.start else datetime.now(settings.timezone).date()
    sessions = scraper.get_sessions_in_range(args.days, start)
    _warn_if_degraded(scraper)
    if scraper.last_report.degraded:
        print("Refusing to store sample data.", file=sys.stderr)
        return 1

    with SQLiteStore(args.db or settings.database_path) as store:
        store.upsert_sessions(sessions)
        stale = store.mark_stale(sessions, start, start + timedelta(days=args.days))
    print(f"Stored {len(sessions)} session(s); {stale} marked inactive")
    return 0


def cmd_users(args, settings: Settings) -> int:
    payload = json.loads(Path(args.load).read_text(encoding="utf-8"))
    items = payload if isinstance(payload, list) else [payload]
    with SQLiteStore(args.db or settings.database_path) as store:
        for item in items:
            store.save_constraints(UserConstraintSet.from_dict(item))
    print(f"Saved {len(items)} user constraint set(s)")
    return 0


def cmd_notify(args, settings: Settings) -> int:
    sender = LogSender() if args.dry_run else TelegramSender(settings.telegram_bot_token)
    with SQLiteStore(args.db or settings.database_path) as store:
        report = NotificationWindower(store, sender, settings).run()
    print(f"Sent {report.sent}, skipped {report.skipped}, failed {report.failed}")
    return 0


def cmd_digest(args, settings: Settings) -> int:
    today = datetime.now(settings.timezone).date()
    with SQLiteStore(args.db or settings.database_path) as store:
        sessions = store.all_sessions()
        users = store.load_constraints()
    for user in users:
        last_day = (today + timedelta(days=digest_days_for(user.timing_offsets))).isoformat()
        upcoming = [s for s in sessions if today.isoformat() <= s.date_iso <= last_day]
        page = paginate(select_digest_sessions(upcoming, user), args.page, args.per_page)
        print(f"\n== {user.user_id}: {page.total} match(es), page {page.page}/{page.total_pages}")
        _print_sessions(page.sessions)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="The Wave lake schedule: query sessions, sync them, send alerts.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sessions", help="Show or export sessions")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--today", action="store_true", help="Today's sessions")
    mode.add_argument("--tomorrow", action="store_true", help="Tomorrow's sessions")
    mode.add_argument("--date", metavar="YYYY-MM-DD", help="Sessions on one date")
    p.add_argument("--days", type=int, default=7, help="Days after --start to include. Default: 7")
    p.add_argument("--start", metavar="YYYY-MM-DD", help="Range start. Default: today")
    p.add_argument("--level", action="append", choices=[l.value for l in Level])
    p.add_argument("--side", action="append", choices=[s.value for s in Side])
    p.add_argument("--min-spots", type=int, default=0, help="Only sessions with at least N spaces")
    p.add_argument("-f", "--format", choices=["ics", "csv", "json"], help="Export instead of printing")
    p.add_argument("-o", "--output", default="wave_sessions", help="Output path (without extension)")
    p.set_defaults(func=cmd_sessions)

    p = sub.add_parser("scrape", help="Fetch a range and upsert it into the store")
    p.add_argument("--days", type=int, default=7)
    p.add_argument("--start", metavar="YYYY-MM-DD")
    p.add_argument("--db", help="SQLite path. Default: WAVE_DB_PATH")
    p.set_defaults(func=cmd_scrape)

    p = sub.add_parser("users", help="Load user constraint sets from JSON")
    p.add_argument("--load", metavar="JSON_PATH", required=True)
    p.add_argument("--db")
    p.set_defaults(func=cmd_users)

    p = sub.add_parser("notify", help="Run the notification windower once")
    p.add_argument("--db")
    p.add_argument("--dry-run", action="store_true", help="Log alerts instead of sending")
    p.set_defaults(func=cmd_notify)

    p = sub.add_parser("digest", help="Print each user's matching upcoming sessions")
    p.add_argument("--db")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--per-page", type=int, default=DEFAULT_PAGE_SIZE)
    p.set_defaults(func=cmd_digest)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        return args.func(args, settings)
    except (WaveScheduleError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
