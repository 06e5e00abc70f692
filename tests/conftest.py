"""Shared test fixtures for StillFresh."""

import json
from zoneinfo import ZoneInfo

import pytest

from still_fresh.item_store import ItemStore
from still_fresh.models import ExpiryEstimates, ReceiptItem, StorageMode
from still_fresh.timestamps import parse_instant

LA = ZoneInfo("America/Los_Angeles")


@pytest.fixture
def tz():
    return LA


@pytest.fixture
def make_item():
    """Factory for items with expiry estimates given as ISO strings or dates."""

    def _make(
        name: str = "Milk",
        fridge: str = "2025-01-10T12:00:00Z",
        pantry: str | None = None,
        freezer: str | None = None,
        storage: StorageMode = StorageMode.FRIDGE,
        **kwargs,
    ) -> ReceiptItem:
        estimates = ExpiryEstimates(
            pantry=parse_instant(pantry or fridge),
            fridge=parse_instant(fridge),
            freezer=parse_instant(freezer or fridge),
        )
        return ReceiptItem(
            name=name, default_storage=storage, expiry_by_storage=estimates, **kwargs
        )

    return _make


@pytest.fixture
def five_items(make_item):
    return [make_item(name=name) for name in ["Apples", "Bread", "Cheese", "Dates", "Eggs"]]


@pytest.fixture
def store(five_items):
    """Store holding five items, in alphabetical order."""
    return ItemStore(five_items)


@pytest.fixture
def classifier_response():
    """Current classifier schema: recommended_storage, expiry strings."""
    return {
        "scan_group_id": "scan-001",
        "items": [
            {
                "name": "Whole Milk",
                "normalized_name": "milk",
                "category": "dairy",
                "quantity": {"count": 2, "amount_per_unit": 64, "unit": "oz"},
                "purchase_date": "2025-01-05",
                "recommended_storage": "refrigerator",
                "expiry": {
                    "pantry": "2025-01-06",
                    "refrigerator": "2025-01-12",
                    "freezer": "2025-03-05",
                },
                "price_per_unit": 3.49,
                "total_price": 6.98,
                "perishability_confidence": 0.92,
            },
            {
                "name": "Sourdough",
                "quantity": 1,
                "purchase_date": "2025-01-05T18:30:00Z",
                "recommended_storage": "Pantry",
                "expiry": {
                    "pantry": "2025-01-09T00:00:00.000Z",
                    "refrigerator": "2025-01-12",
                    "freezer": "2025-04-05",
                },
                "total_price": "4.50",
            },
        ],
        "meta": {"warnings": ["Low confidence on line 3"]},
    }


@pytest.fixture
def legacy_classifier_response():
    """Older classifier schema: default_storage, expiry objects with a date."""
    return {
        "items": [
            {
                "name": "Ground Beef",
                "quantity": {"count": "1"},
                "default_storage": "fridge",
                "expiry": {
                    "outside": {"date": "2025-01-05", "days_from_now": 0},
                    "fridge": {"date": "2025-01-07", "days_from_now": 2},
                    "freezer": {"date": "2025-04-05", "days_from_now": 90},
                },
                "price_per_unit": 7.99,
            }
        ]
    }


@pytest.fixture
def classifier_file(tmp_path, classifier_response):
    path = tmp_path / "scan.json"
    path.write_text(json.dumps(classifier_response))
    return path
