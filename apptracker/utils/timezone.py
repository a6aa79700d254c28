from datetime import datetime, timezone as dt_timezone
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apptracker.core.config import settings

HUMAN_TIME_FORMAT = "%I:%M %p"


def utcnow() -> datetime:
    return datetime.now(dt_timezone.utc)


def get_zoneinfo(tz_name: Optional[str] = None) -> Optional[ZoneInfo]:
    """Resolve an IANA name, falling back to settings.DEFAULT_TIMEZONE. None if neither resolves."""
    for name in (tz_name, getattr(settings, "DEFAULT_TIMEZONE", None)):
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return None


def to_utc_aware(dt: datetime | None) -> datetime | None:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC).
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def localize(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a (UTC-assumed if naive) datetime into the given zone, or the default zone."""
    aware = to_utc_aware(dt)
    tz = get_zoneinfo(tz_name)
    return aware.astimezone(tz) if tz is not None else aware


def format_human(dt: datetime, tz_name: Optional[str] = None) -> str:
    """Render e.g. 'Monday, March 2, 2026 at 09:30 AM (Europe/London)'."""
    local = localize(dt, tz_name)
    zone = getattr(local.tzinfo, "key", None) or local.tzname() or "UTC"
    # Unpadded day; strftime has no portable flag for it
    return f"{local:%A, %B} {local.day}, {local:%Y} at {local.strftime(HUMAN_TIME_FORMAT)} ({zone})"
