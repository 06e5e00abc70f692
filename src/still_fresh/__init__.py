"""StillFresh - Track household food purchases and what is about to expire."""

from .analytics import (
    Analytics,
    compare_weeks,
    current_week_bucket,
    expiring_within,
    weekly_buckets,
)
from .config import ConfigManager
from .expiry import (
    days_until_expiry,
    effective_expiry,
    expiry_countdown,
    is_expired,
    shelf_life_fraction,
    urgency,
)
from .item_store import ItemStore
from .models import (
    ExpiringSort,
    ExpiryEstimates,
    PurchaseGroup,
    ReceiptItem,
    SortKey,
    StorageMode,
    UndoAction,
    Urgency,
    WeekBucket,
)
from .output_formatter import OutputFormatter
from .receipt_mapper import (
    ClassifierResponseError,
    IngestionError,
    IngestionResult,
    map_response,
    to_item_record,
)
from .review import DraftNotFoundError, PendingReview, ReviewClosedError

__version__ = "0.1.0"

__all__ = [
    "Analytics",
    "ClassifierResponseError",
    "compare_weeks",
    "ConfigManager",
    "current_week_bucket",
    "days_until_expiry",
    "DraftNotFoundError",
    "effective_expiry",
    "ExpiringSort",
    "expiry_countdown",
    "expiring_within",
    "ExpiryEstimates",
    "IngestionError",
    "IngestionResult",
    "is_expired",
    "ItemStore",
    "map_response",
    "OutputFormatter",
    "PendingReview",
    "PurchaseGroup",
    "ReceiptItem",
    "ReviewClosedError",
    "shelf_life_fraction",
    "SortKey",
    "StorageMode",
    "to_item_record",
    "UndoAction",
    "urgency",
    "Urgency",
    "WeekBucket",
    "weekly_buckets",
]
