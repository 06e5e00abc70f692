"""Demo items for an empty store."""

from datetime import UTC, datetime, timedelta

from .item_store import ItemStore
from .models import ExpiryEstimates, ReceiptItem, StorageMode


def mock_items(now: datetime | None = None) -> list[ReceiptItem]:
    """Three sample purchases from the last few days, relative to ``now``."""
    now = (now or datetime.now(UTC)).astimezone(UTC)

    def hours(n: int) -> datetime:
        return now + timedelta(hours=n)

    return [
        ReceiptItem(
            name="Strawberries",
            quantity=1,
            purchased_at=now - timedelta(days=1),
            default_storage=StorageMode.FRIDGE,
            expiry_by_storage=ExpiryEstimates(
                pantry=hours(6), fridge=hours(48), freezer=hours(14 * 24)
            ),
            price_per_unit=3.99,
            total_price=3.99,
        ),
        ReceiptItem(
            name="Chicken Breast",
            quantity=1,
            purchased_at=now - timedelta(days=2),
            default_storage=StorageMode.FRIDGE,
            expiry_by_storage=ExpiryEstimates(
                pantry=hours(2), fridge=hours(36), freezer=hours(90 * 24)
            ),
            price_per_unit=5.49,
            total_price=10.98,
        ),
        ReceiptItem(
            name="Bananas",
            quantity=6,
            purchased_at=now - timedelta(days=3),
            default_storage=StorageMode.PANTRY,
            expiry_by_storage=ExpiryEstimates(
                pantry=hours(72), fridge=hours(6 * 24), freezer=hours(60 * 24)
            ),
            price_per_unit=0.29,
            total_price=1.74,
        ),
    ]


def load_mock_data_if_empty(store: ItemStore, now: datetime | None = None) -> bool:
    """Seed an empty store. Returns True if items were added."""
    if len(store):
        return False
    store.add(mock_items(now))
    return True
