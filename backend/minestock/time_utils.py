# Overview: Clock and ISO-8601 helpers. Internally every datetime is UTC-naive.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Wall-clock 'now' in UTC, naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def as_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2025-12-06T10:00", "2025-12-06T10:00:00Z" or "...+02:00" -> UTC-naive datetime.

    None / "" -> None. Raises ValueError on anything else.
    """
    s = _blank_to_none(value)
    if s is None:
        return None
    if s.endswith("Z"):
        s = f"{s[:-1]}+00:00"
    return as_utc_naive(datetime.fromisoformat(s))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" into a date. None / "" -> None."""
    s = _blank_to_none(value)
    return date.fromisoformat(s) if s is not None else None


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with a trailing 'Z' (naive input is UTC)."""
    if dt is None:
        return None
    return as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"


def to_iso_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()
