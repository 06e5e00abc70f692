"""Effective expiry resolution and urgency classification."""

from datetime import date, datetime, timedelta, tzinfo

from .models import ReceiptItem, Urgency
from .timestamps import elapsed, ensure_aware, local_day_start, recorded_day

# Fixed business threshold, not configurable.
SOON_WINDOW = timedelta(hours=48)


def effective_expiry(item: ReceiptItem) -> datetime | None:
    """Resolve the single authoritative expiry instant for an item.

    Priority: user override, then the estimate for the selected storage, then
    the estimate for the default storage. ``None`` means no expiry is known and
    callers must treat the item as far in the future.
    """
    if item.user_override_expiry is not None:
        return item.user_override_expiry

    estimates = item.expiry_by_storage
    if estimates is None:
        return None
    if item.selected_storage is not None:
        return estimates.get(item.selected_storage)
    return estimates.get(item.default_storage)


def effective_expiry_day_local(item: ReceiptItem, tz: tzinfo) -> date | None:
    """Calendar day the effective expiry falls on for a viewer in ``tz``.

    The day is taken from the instant as recorded, not from the viewer's clock,
    so a midnight UTC estimate never drifts onto a neighbouring day.

    Args:
        item: Item to resolve
        tz: Viewer timezone

    Returns:
        The expiry day, or None if the item has no known expiry
    """
    expiry = effective_expiry(item)
    if expiry is None:
        return None
    return local_day_start(recorded_day(expiry), tz).date()


def urgency(item: ReceiptItem, now: datetime) -> Urgency:
    """Classify an item as expired, soon or fresh relative to ``now``.

    Granularity is the calendar day: an item is never expired on its own
    expiry day. It is ``soon`` when the end of its expiry day is at most 48
    hours away. An expiry on the last representable day never comes due.
    """
    now = ensure_aware(now)
    tz = now.tzinfo
    expiry_day = effective_expiry_day_local(item, tz)  # type: ignore[arg-type]
    if expiry_day is None:
        return Urgency.FRESH

    if expiry_day < now.date():
        return Urgency.EXPIRED
    if expiry_day == date.max:
        return Urgency.FRESH

    end_exclusive = local_day_start(expiry_day + timedelta(days=1), tz)  # type: ignore[arg-type]
    if elapsed(now, end_exclusive) <= SOON_WINDOW:
        return Urgency.SOON

    return Urgency.FRESH


def is_expired(item: ReceiptItem, now: datetime) -> bool:
    return urgency(item, now) == Urgency.EXPIRED


def days_until_expiry(item: ReceiptItem, now: datetime) -> int | None:
    """Whole calendar days from today to the expiry day; negative once past."""
    now = ensure_aware(now)
    expiry_day = effective_expiry_day_local(item, now.tzinfo)  # type: ignore[arg-type]
    if expiry_day is None:
        return None
    return (expiry_day - now.date()).days


def expiry_countdown(item: ReceiptItem, now: datetime) -> str | None:
    """Short label such as ``today``, ``tomorrow`` or ``in 3 days``."""
    days = days_until_expiry(item, now)
    if days is None:
        return None
    if days < 0:
        return "expired"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"


def shelf_life_fraction(item: ReceiptItem, now: datetime) -> float:
    """Share of the purchase-to-expiry span still remaining, clamped to [0, 1].

    Items without a known expiry, or whose expiry is not after the purchase,
    report 0.
    """
    expiry = effective_expiry(item)
    if expiry is None:
        return 0.0
    total = elapsed(item.purchased_at, expiry)
    if total <= timedelta(0):
        return 0.0
    remaining = elapsed(ensure_aware(now), expiry)
    return min(1.0, max(0.0, remaining / total))
