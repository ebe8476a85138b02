"""
Runtime settings, read from the environment (and a local .env file).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import pytz
from dotenv import load_dotenv

load_dotenv()

DEFAULT_TIMEZONE = "Europe/London"
BASE_URL = "https://www.thewave.com"


@dataclass
class Settings:
    schedule_url: str = f"{BASE_URL}/lake-schedule/"
    week_param: str = "date"
    booking_url: str = f"{BASE_URL}/book/"
    timezone: pytz.BaseTzInfo = pytz.timezone(DEFAULT_TIMEZONE)
    fetch_attempts: int = 4
    fetch_timeout: float = 15.0
    backoff_base: float = 0.5
    min_body_length: int = 1000
    fallback_to_sample: bool = False
    fetch_workers: int = 4
    tolerance_minutes: int = 15
    database_path: str = "wave_schedule.db"
    telegram_bot_token: str = ""
    log_level: str = "INFO"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning("Invalid integer for %s=%r, using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.warning("Invalid number for %s=%r, using %s", name, raw, default)
        return default


def get_timezone() -> pytz.BaseTzInfo:
    tz_name = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logging.warning("Invalid TIMEZONE %s, falling back to %s", tz_name, DEFAULT_TIMEZONE)
        return pytz.timezone(DEFAULT_TIMEZONE)


def get_settings() -> Settings:
    defaults = Settings()
    settings = Settings(
        schedule_url=os.getenv("WAVE_SCHEDULE_URL", defaults.schedule_url),
        week_param=os.getenv("WAVE_WEEK_PARAM", defaults.week_param),
        booking_url=os.getenv("WAVE_BOOKING_URL", defaults.booking_url),
        timezone=get_timezone(),
        fetch_attempts=_env_int("WAVE_FETCH_ATTEMPTS", defaults.fetch_attempts),
        fetch_timeout=_env_float("WAVE_FETCH_TIMEOUT", defaults.fetch_timeout),
        backoff_base=_env_float("WAVE_FETCH_BACKOFF", defaults.backoff_base),
        min_body_length=_env_int("WAVE_MIN_BODY_LENGTH", defaults.min_body_length),
        fallback_to_sample=_env_bool("WAVE_FALLBACK_SAMPLE"),
        fetch_workers=_env_int("WAVE_FETCH_WORKERS", defaults.fetch_workers),
        tolerance_minutes=_env_int("NOTIFY_TOLERANCE_MINUTES", defaults.tolerance_minutes),
        database_path=os.getenv("WAVE_DB_PATH", defaults.database_path),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
    if settings.fallback_to_sample:
        logging.warning("WAVE_FALLBACK_SAMPLE is on; fetch outages will serve sample data")
    return settings
