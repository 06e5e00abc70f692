"""Timestamp parsing, formatting and local calendar helpers.

Instants are stored as timezone-aware datetimes and serialized in one form,
``YYYY-MM-DDTHH:MM:SS.mmmZ``. Expiry estimates are date-granular, so most of
the calendar work here is about turning an instant back into the calendar day
it was recorded for, then anchoring that day in the viewer's timezone.
"""

import os
import re
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_BARE_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Bare dates are pinned to midday UTC so no viewer timezone moves them to another day.
BARE_DATE_ANCHOR = time(12, 0)

LOCALTIME = "/etc/localtime"


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant or a bare ``YYYY-MM-DD`` date.

    Args:
        value: ISO-8601 string, with or without fractional seconds

    Returns:
        Aware datetime in UTC

    Raises:
        ValueError: If the string is not a date or an instant with an offset
    """
    text = value.strip()
    if _BARE_DATE.match(text):
        return datetime.combine(date.fromisoformat(text), BARE_DATE_ANCHOR, tzinfo=UTC)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {value!r}")
    return parsed.astimezone(UTC)


def format_instant(value: datetime) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    utc = value.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def normalize_timestamp(value: str) -> str:
    """Normalize a date or instant string into the internal instant form."""
    return format_instant(parse_instant(value))


def local_zone() -> tzinfo:
    """System timezone, with its DST rules where the zone database has them.

    Looks at ``TZ`` first, then ``/etc/localtime``. Only when neither names a
    zone does it fall back to the current fixed UTC offset.
    """
    name = os.environ.get("TZ", "").lstrip(":")
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    try:
        with open(LOCALTIME, "rb") as f:
            return ZoneInfo.from_file(f, key="localtime")
    except (OSError, ValueError):
        return datetime.now(UTC).astimezone().tzinfo  # type: ignore[return-value]


def local_now() -> datetime:
    return datetime.now(local_zone())


def ensure_aware(now: datetime) -> datetime:
    """Attach the system local zone to a naive datetime."""
    if now.tzinfo is None:
        return now.astimezone(local_zone())
    return now


def recorded_day(instant: datetime) -> date:
    """Calendar day an instant was recorded for (its UTC Y-M-D)."""
    return instant.astimezone(UTC).date()


def local_day_start(day: date, tz: tzinfo) -> datetime:
    """Local midnight of a calendar day.

    The day is first built at local noon, then truncated, so a DST switch at
    midnight cannot push the result onto a neighbouring day.
    """
    noon = datetime.combine(day, time(12, 0), tzinfo=tz)
    return noon.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_local_day(now: datetime) -> datetime:
    now = ensure_aware(now)
    return local_day_start(now.date(), now.tzinfo)  # type: ignore[arg-type]


def next_local_midnight(now: datetime) -> datetime:
    """When displays need to roll over to the next calendar day."""
    now = ensure_aware(now)
    return local_day_start(now.date() + timedelta(days=1), now.tzinfo)  # type: ignore[arg-type]


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Real time between two instants, DST transitions included."""
    return end.astimezone(UTC) - start.astimezone(UTC)
