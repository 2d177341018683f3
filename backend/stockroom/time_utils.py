"""
Time helpers.

The database stores UTC-naive datetimes; the API speaks ISO-8601 with a
trailing 'Z'. Everything crossing that boundary goes through here.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time, naive (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2025-01-05T10:00:00+02:00" -> datetime(2025, 1, 5, 8, 0)

    Blank input is None. Offsets (including 'Z') are folded into UTC;
    values without an offset are taken as UTC already. Raises ValueError
    for anything fromisoformat rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with 'Z'; naive input is read as UTC."""
    if dt is None:
        return None
    return as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"


def export_date_stamp(now: Optional[datetime] = None) -> str:
    """YYYY-MM-DD used in export file names."""
    return (now or utcnow()).strftime("%Y-%m-%d")
