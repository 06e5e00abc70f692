"""Weekly savings/waste buckets and dashboard projections.

Everything here is recomputed from the raw item list on each call; nothing is
cached, so a timer only needs to call these again after local midnight.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from .expiry import effective_expiry, effective_expiry_day_local, urgency
from .item_normalizer import canonical_key
from .item_store import ItemStore
from .models import ExpiringSort, PurchaseGroup, ReceiptItem, StorageMode, Urgency, WeekBucket
from .timestamps import ensure_aware, local_now, week_start

logger = logging.getLogger(__name__)


def weekly_buckets(
    items: Iterable[ReceiptItem], weeks_back: int, now: datetime
) -> list[WeekBucket]:
    """Split item value into saved, wasted and potential per ISO week.

    Each item lands in the week of its effective expiry day. Used items count
    as saved whatever their expiry; otherwise items whose expiry day is before
    today are wasted and the rest are potential. Items outside the window, or
    with no known expiry, are skipped.

    Args:
        items: Items to aggregate
        weeks_back: Number of weeks ending with the current one
        now: Current time; its timezone decides calendar days

    Returns:
        One bucket per week, oldest first, empty weeks included

    Raises:
        ValueError: If weeks_back is less than one
    """
    if weeks_back < 1:
        raise ValueError("weeks_back must be at least 1")

    now = ensure_aware(now)
    tz = now.tzinfo
    today = now.date()
    current = week_start(today)

    starts = [current - timedelta(weeks=offset) for offset in reversed(range(weeks_back))]
    buckets = {start: WeekBucket(week_start=start) for start in starts}

    for item in items:
        expiry_day = effective_expiry_day_local(item, tz)  # type: ignore[arg-type]
        if expiry_day is None:
            logger.debug("Skipping %s: no known expiry", item.id)
            continue

        bucket = buckets.get(week_start(expiry_day))
        if bucket is None:
            continue

        cost = item.effective_total_cost
        if item.is_used:
            bucket.saved += cost
        elif expiry_day < today:
            bucket.wasted += cost
        else:
            bucket.potential += cost

    return [buckets[key] for key in sorted(buckets)]


def current_week_bucket(items: Iterable[ReceiptItem], now: datetime) -> WeekBucket:
    """Bucket for the week containing ``now``."""
    return weekly_buckets(items, 1, now)[0]


def compare_weeks(
    items: Iterable[ReceiptItem], now: datetime
) -> tuple[WeekBucket, WeekBucket]:
    """Previous and current week buckets, for week-over-week deltas."""
    previous, current = weekly_buckets(items, 2, now)
    return previous, current


def expiring_within(
    items: Iterable[ReceiptItem],
    days_ahead: int,
    now: datetime,
    storages: Iterable[StorageMode] | None = None,
    sort: ExpiringSort = ExpiringSort.SOONEST,
) -> list[ReceiptItem]:
    """Unused items expiring from today through ``days_ahead`` days out.

    Repeat purchases of the same item collapse to the one that expires first.

    Args:
        items: Items to scan
        days_ahead: Days after today to include (2 means today plus two days)
        now: Current time
        storages: Only items filed under these storage modes; all if None
        sort: Ordering of the result

    Returns:
        One item per canonical key, sorted as requested
    """
    now = ensure_aware(now)
    tz = now.tzinfo
    today = now.date()
    last_day = today + timedelta(days=max(0, days_ahead))
    allowed = set(storages) if storages is not None else set(StorageMode)

    soonest: dict[str, tuple[ReceiptItem, datetime]] = {}
    for item in items:
        if item.is_used or item.selected_storage not in allowed:
            continue
        expiry_day = effective_expiry_day_local(item, tz)  # type: ignore[arg-type]
        if expiry_day is None or not today <= expiry_day <= last_day:
            continue
        expiry = effective_expiry(item)
        existing = soonest.get(item.canonical_key)
        if existing is None or expiry < existing[1]:  # type: ignore[operator]
            soonest[item.canonical_key] = (item, expiry)  # type: ignore[assignment]

    pairs = list(soonest.values())
    if sort == ExpiringSort.SOONEST:
        pairs.sort(key=lambda p: p[1])
    elif sort == ExpiringSort.LATEST:
        pairs.sort(key=lambda p: p[1], reverse=True)
    elif sort == ExpiringSort.URGENCY:
        pairs.sort(key=lambda p: urgency(p[0], now).rank)
    elif sort == ExpiringSort.STORAGE:
        pairs.sort(key=lambda p: p[0].selected_storage.rank)  # type: ignore[union-attr]
    elif sort == ExpiringSort.NAME:
        pairs.sort(key=lambda p: p[0].name.casefold())
    elif sort == ExpiringSort.PURCHASED_NEWEST:
        pairs.sort(key=lambda p: p[0].purchased_at, reverse=True)
    elif sort == ExpiringSort.QUANTITY_HIGH:
        pairs.sort(key=lambda p: p[0].quantity, reverse=True)
    else:
        raise ValueError(f"Unknown sort: {sort}")

    return [item for item, _ in pairs]


def expired_count(items: Iterable[ReceiptItem], now: datetime) -> int:
    return sum(1 for item in items if urgency(item, now) == Urgency.EXPIRED)


def purchase_groups(items: Iterable[ReceiptItem], now: datetime) -> list[PurchaseGroup]:
    """Group items by local purchase day, newest day first."""
    tz = ensure_aware(now).tzinfo
    grouped: dict[date, list[ReceiptItem]] = defaultdict(list)
    for item in items:
        grouped[item.purchased_at.astimezone(tz).date()].append(item)

    return [
        PurchaseGroup(
            day=day,
            item_count=len(group),
            total_quantity=sum(max(1, i.quantity) for i in group),
            item_ids=[i.id for i in group],
        )
        for day, group in sorted(grouped.items(), key=lambda kv: kv[0], reverse=True)
    ]


def item_history(items: Iterable[ReceiptItem], name: str) -> list[ReceiptItem]:
    """Every purchase sharing ``name``'s canonical key, newest first."""
    key = canonical_key(name)
    matches = [i for i in items if i.canonical_key == key]
    return sorted(matches, key=lambda i: i.purchased_at, reverse=True)


class Analytics:
    """Dashboard figures computed from an ItemStore."""

    def __init__(self, store: ItemStore | None = None):
        self.store = store if store is not None else ItemStore()

    def _now(self, now: datetime | None) -> datetime:
        return ensure_aware(now) if now else local_now()

    def weekly_buckets(self, weeks_back: int = 8, now: datetime | None = None) -> list[WeekBucket]:
        return weekly_buckets(self.store.items, weeks_back, self._now(now))

    def current_week_bucket(self, now: datetime | None = None) -> WeekBucket:
        return current_week_bucket(self.store.items, self._now(now))

    def compare_weeks(self, now: datetime | None = None) -> tuple[WeekBucket, WeekBucket]:
        return compare_weeks(self.store.items, self._now(now))

    def expiring_within(
        self,
        days_ahead: int = 2,
        now: datetime | None = None,
        storages: Iterable[StorageMode] | None = None,
        sort: ExpiringSort = ExpiringSort.SOONEST,
    ) -> list[ReceiptItem]:
        return expiring_within(self.store.items, days_ahead, self._now(now), storages, sort)

    def expired_count(self, now: datetime | None = None) -> int:
        return expired_count(self.store.items, self._now(now))

    def purchase_groups(self, now: datetime | None = None) -> list[PurchaseGroup]:
        return purchase_groups(self.store.items, self._now(now))

    def item_history(self, name: str) -> list[ReceiptItem]:
        return item_history(self.store.items, name)
