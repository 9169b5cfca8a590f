"""UTC timestamp helpers.

SQLite drops tzinfo on read, so every comparison against "now" goes
through ensure_utc.
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(value: datetime | None, now: datetime | None = None) -> bool:
    """True when value is set and not after now."""
    if value is None:
        return False
    return ensure_utc(value) <= (ensure_utc(now) if now else now_utc())
