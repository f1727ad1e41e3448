from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime], *, precise: bool = False) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC. precise keeps microseconds.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    if not precise:
        dt_utc = dt_utc.replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def parse_ymd(value: Optional[str]) -> Optional[date]:
    """
    Parse a calendar date in strict YYYY-MM-DD form.

    No time zone conversion is applied; the date is taken as written.
    Raises ValueError for anything else.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if len(s) != 10:
        raise ValueError(f"invalid date: {value!r}")
    return datetime.strptime(s, "%Y-%m-%d").date()


def to_ymd(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()
