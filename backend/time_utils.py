from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "UTC"

_app_timezone = ZoneInfo(DEFAULT_TIMEZONE)


def load_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise RuntimeError(f"Invalid APP_TIMEZONE: {name}")


def configure_timezone(name: Optional[str]) -> ZoneInfo:
    """Sets the zone used for OTP expiry, phase deadlines and scan timestamps."""
    global _app_timezone
    _app_timezone = load_timezone(name)
    return _app_timezone


def app_timezone() -> ZoneInfo:
    return _app_timezone


def now_tz() -> datetime:
    return datetime.now(_app_timezone)


def ensure_timezone(dt: datetime) -> datetime:
    # SQLite hands back naive values; they were written in the app zone
    if dt.tzinfo is None:
        return dt.replace(tzinfo=_app_timezone)
    return dt.astimezone(_app_timezone)
