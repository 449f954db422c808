from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: str) -> datetime:
    return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def to_utc_iso(value: datetime) -> str:
    """Format as ISO-8601 UTC with second precision and a Z suffix."""
    return ensure_utc(value).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    return ensure_utc(value).astimezone(tz)


def parse_local_input(text: str, tz: ZoneInfo) -> datetime:
    """Parse a datetime-local style value (YYYY-MM-DDTHH:MM[:SS]) in the given zone."""
    parsed = datetime.fromisoformat(text.strip().replace(" ", "T", 1))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def safe_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except Exception:
        return ZoneInfo("UTC")
