"""Timezone-aware rendering of backend timestamps."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .storage import PreferenceStore

logger = logging.getLogger(__name__)

TIMEZONE_PREFERENCE_KEY = "app-timezone"

_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

COMMON_TIMEZONES = [
    ("UTC", "UTC (Coordinated Universal Time)"),
    ("America/New_York", "Eastern Time (US)"),
    ("America/Chicago", "Central Time (US)"),
    ("America/Denver", "Mountain Time (US)"),
    ("America/Los_Angeles", "Pacific Time (US)"),
    ("Europe/London", "London (GMT/BST)"),
    ("Europe/Paris", "Paris (CET/CEST)"),
    ("Europe/Berlin", "Berlin (CET/CEST)"),
    ("Europe/Rome", "Rome (CET/CEST)"),
    ("Europe/Madrid", "Madrid (CET/CEST)"),
    ("Europe/Amsterdam", "Amsterdam (CET/CEST)"),
    ("Europe/Vienna", "Vienna (CET/CEST)"),
    ("Europe/Zurich", "Zurich (CET/CEST)"),
    ("Asia/Tokyo", "Tokyo (JST)"),
    ("Asia/Shanghai", "Shanghai (CST)"),
    ("Asia/Kolkata", "Mumbai/Delhi (IST)"),
    ("Australia/Sydney", "Sydney (AEST/AEDT)"),
    ("Australia/Melbourne", "Melbourne (AEST/AEDT)"),
    ("Pacific/Auckland", "Auckland (NZST/NZDT)"),
]


@dataclass(frozen=True, slots=True)
class FormattedTimestamp:
    date: str
    time: str


INVALID_TIMESTAMP = FormattedTimestamp("Invalid Date", "Invalid Time")


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def parse_backend_timestamp(value: str) -> datetime:
    """Parse a backend timestamp into an aware datetime.

    The backend writes SQLite ``datetime('now')`` values, which are UTC but
    carry no zone marker. Strings containing ``T`` or ``Z`` are taken as
    already zoned; if they still parse without an offset they are read as UTC
    as well.
    """
    text = value.strip()
    if "T" in text or "Z" in text:
        parsed = datetime.fromisoformat(text)
    else:
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_in_timezone(value: str | None, timezone_name: str) -> FormattedTimestamp:
    """Render ``value`` as en-US date and 24-hour time strings in ``timezone_name``."""
    if not value:
        return INVALID_TIMESTAMP
    try:
        zone = ZoneInfo(timezone_name)
        local = parse_backend_timestamp(value).astimezone(zone)
    except (ValueError, TypeError, OverflowError, ZoneInfoNotFoundError) as exc:
        logger.debug("Cannot format timestamp %r in %s: %s", value, timezone_name, exc)
        return INVALID_TIMESTAMP
    return FormattedTimestamp(
        date=f"{_MONTH_ABBREVIATIONS[local.month - 1]} {local.day}, {local.year}",
        time=f"{local.hour:02d}:{local.minute:02d}:{local.second:02d}",
    )


def format_short_date(value: str | None, timezone_name: str) -> str:
    """Month and day only (``"Jan 15"``), ``"Never"`` for missing values."""
    if not value:
        return "Never"
    formatted = format_in_timezone(value, timezone_name)
    if formatted is INVALID_TIMESTAMP:
        return "Invalid"
    return formatted.date.split(",")[0]


def detect_system_timezone() -> str:
    """Best-effort IANA name of the host timezone, ``UTC`` when unknown."""
    candidate = os.environ.get("TZ", "").lstrip(":")
    if is_valid_timezone(candidate):
        return candidate
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        resolved = str(localtime.resolve())
        if "zoneinfo/" in resolved:
            candidate = resolved.split("zoneinfo/", 1)[1]
            if is_valid_timezone(candidate):
                return candidate
    timezone_file = Path("/etc/timezone")
    if timezone_file.exists():
        candidate = timezone_file.read_text(encoding="utf-8").strip()
        if is_valid_timezone(candidate):
            return candidate
    return "UTC"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC timestamp in the backend's own ``YYYY-MM-DD HH:MM:SS`` format."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class TimezoneSettings:
    """The active display timezone, passed explicitly to every renderer.

    Sourced once at startup from the saved preference or the host zone;
    changes are applied immediately and persisted right away.
    """

    def __init__(self, preferences: PreferenceStore | None = None, *, default: str | None = None) -> None:
        self._preferences = preferences
        saved = preferences.get(TIMEZONE_PREFERENCE_KEY) if preferences else None
        if is_valid_timezone(saved):
            logger.info("Using saved timezone: %s", saved)
            self._timezone = saved
        else:
            self._timezone = default if is_valid_timezone(default) else detect_system_timezone()
            logger.info("Using system timezone: %s", self._timezone)

    @property
    def timezone(self) -> str:
        return self._timezone

    def set_timezone(self, name: str) -> None:
        if not is_valid_timezone(name):
            raise ValueError(f"Unknown timezone '{name}'")
        self._timezone = name
        if self._preferences is not None:
            self._preferences.set(TIMEZONE_PREFERENCE_KEY, name)

    def format(self, value: str | None) -> FormattedTimestamp:
        return format_in_timezone(value, self._timezone)

    def format_short_date(self, value: str | None) -> str:
        return format_short_date(value, self._timezone)
