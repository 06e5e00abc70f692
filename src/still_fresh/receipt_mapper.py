"""Map receipt classifier responses into item records."""

import logging
import math
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import ExpiryEstimates, ReceiptItem, StorageMode
from .timestamps import normalize_timestamp, parse_instant

logger = logging.getLogger(__name__)

_STORAGE_VOCABULARY = {
    "pantry": StorageMode.PANTRY,
    "outside": StorageMode.PANTRY,
    "fridge": StorageMode.FRIDGE,
    "refrigerator": StorageMode.FRIDGE,
    "freezer": StorageMode.FREEZER,
}

# Accepted expiry keys per storage mode, across classifier schema versions.
_EXPIRY_KEYS = {
    StorageMode.PANTRY: ("pantry", "outside"),
    StorageMode.FRIDGE: ("fridge", "refrigerator"),
    StorageMode.FREEZER: ("freezer",),
}


class IngestionError(ValueError):
    """Raised when a classifier item cannot become an item record."""


class ClassifierResponseError(ValueError):
    """Raised when a classifier response body is not usable at all."""


def coerce_number(value: Any) -> float | None:
    """Accept a number or numeric string; anything else is treated as absent."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def storage_mode(value: str | None, default: StorageMode = StorageMode.FRIDGE) -> StorageMode:
    """Map classifier storage vocabulary onto a StorageMode, case-insensitively."""
    if not isinstance(value, str):
        return default
    return _STORAGE_VOCABULARY.get(value.strip().lower(), default)


class ClassifierQuantity(BaseModel):
    """Quantity block of a classifier item."""

    model_config = ConfigDict(extra="ignore")

    count: int = 1
    amount_per_unit: float | None = None
    unit: str | None = None

    @field_validator("count", mode="before")
    @classmethod
    def coerce_count(cls, v: Any) -> int:
        number = coerce_number(v)
        if number is None or not number.is_integer():
            return 1
        return max(1, int(number))

    @field_validator("amount_per_unit", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float | None:
        return coerce_number(v)

    @field_validator("unit", mode="before")
    @classmethod
    def text_only(cls, v: Any) -> str | None:
        return v.strip() or None if isinstance(v, str) else None


class ClassifierItem(BaseModel):
    """One item as returned by the receipt classifier.

    Covers both response shapes: ``recommended_storage`` with
    ``expiry.{pantry,refrigerator,freezer}`` strings, and ``default_storage``
    with ``expiry.{outside,fridge,freezer}`` objects carrying a ``date``.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    quantity: ClassifierQuantity = Field(default_factory=ClassifierQuantity)
    purchase_date: str | None = None
    expiry: dict[str, Any]
    recommended_storage: str | None = Field(
        default=None,
        validation_alias=AliasChoices("recommended_storage", "default_storage"),
    )
    price_per_unit: float | None = None
    total_price: float | None = None
    category: str | None = None
    normalized_name: str | None = None
    perishability_confidence: float | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Item name is empty")
        return v.strip()

    @field_validator("quantity", mode="before")
    @classmethod
    def wrap_bare_count(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return v
        return {"count": v}

    @field_validator("price_per_unit", "total_price", "perishability_confidence", mode="before")
    @classmethod
    def coerce_numeric(cls, v: Any) -> float | None:
        return coerce_number(v)

    @field_validator("purchase_date", "recommended_storage", "category", "normalized_name", mode="before")
    @classmethod
    def text_only(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class IngestionResult(BaseModel):
    """Items mapped from one classifier response."""

    items: list[ReceiptItem] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    scan_group_id: str | None = None
    warnings: list[str] = Field(default_factory=list)


def _normalized_instant(value: str, field: str) -> datetime:
    try:
        return parse_instant(normalize_timestamp(value))
    except (ValueError, OverflowError) as e:
        raise IngestionError(f"Unparseable {field} date {value!r}") from e


def _expiry_estimates(expiry: dict[str, Any]) -> ExpiryEstimates:
    resolved: dict[str, datetime] = {}
    for mode, keys in _EXPIRY_KEYS.items():
        raw = next((expiry[k] for k in keys if expiry.get(k) is not None), None)
        if isinstance(raw, dict):
            raw = raw.get("date")
        if not isinstance(raw, str):
            raise IngestionError(f"Missing {mode.value} expiry")
        resolved[mode.value] = _normalized_instant(raw, f"{mode.value} expiry")
    return ExpiryEstimates(**resolved)


def to_item_record(
    classifier_item: ClassifierItem | dict[str, Any],
    now: datetime | None = None,
    default_storage: StorageMode = StorageMode.FRIDGE,
) -> ReceiptItem:
    """Convert one classifier item into a fresh, unused item record.

    Args:
        classifier_item: Parsed item or raw response dict
        now: Purchase time used when the classifier gives no purchase date
        default_storage: Storage used for unrecognized storage vocabulary

    Returns:
        New ReceiptItem with its own id

    Raises:
        IngestionError: If the item lacks a required field or has a bad date
    """
    if isinstance(classifier_item, dict):
        try:
            classifier_item = ClassifierItem.model_validate(classifier_item)
        except ValidationError as e:
            raise IngestionError(f"Malformed classifier item: {e.error_count()} errors") from e

    estimates = _expiry_estimates(classifier_item.expiry)

    if classifier_item.purchase_date:
        purchased_at = _normalized_instant(classifier_item.purchase_date, "purchase")
    else:
        purchased_at = now or datetime.now(UTC)

    storage = storage_mode(classifier_item.recommended_storage, default_storage)
    quantity = classifier_item.quantity

    return ReceiptItem(
        name=classifier_item.name,
        quantity=max(1, quantity.count),
        purchased_at=purchased_at,
        default_storage=storage,
        selected_storage=storage,
        expiry_by_storage=estimates,
        per_unit_amount=quantity.amount_per_unit,
        per_unit_unit=quantity.unit,
        price_per_unit=classifier_item.price_per_unit,
        total_price=classifier_item.total_price,
    )


def map_response(
    body: Any,
    now: datetime | None = None,
    default_storage: StorageMode = StorageMode.FRIDGE,
) -> IngestionResult:
    """Map a whole classifier response, dropping items that cannot be mapped.

    Args:
        body: Decoded JSON response body
        now: Purchase time for items without a purchase date
        default_storage: Storage used for unrecognized storage vocabulary

    Returns:
        IngestionResult with mapped items and reasons for dropped ones

    Raises:
        ClassifierResponseError: If the body has no usable items list
    """
    if not isinstance(body, dict):
        raise ClassifierResponseError("Classifier response must be a JSON object")
    raw_items = body.get("items")
    if not isinstance(raw_items, list):
        raise ClassifierResponseError("Classifier response has no items list")

    now = now or datetime.now(UTC)
    scan_group_id = body.get("scan_group_id")
    result = IngestionResult(scan_group_id=scan_group_id if isinstance(scan_group_id, str) else None)
    meta = body.get("meta")
    if isinstance(meta, dict) and isinstance(meta.get("warnings"), list):
        result.warnings = [str(w) for w in meta["warnings"]]

    for index, raw in enumerate(raw_items):
        label = raw.get("name") if isinstance(raw, dict) else None
        try:
            if not isinstance(raw, dict):
                raise IngestionError("Classifier item is not an object")
            result.items.append(to_item_record(raw, now=now, default_storage=default_storage))
        except IngestionError as e:
            reason = f"item {index} ({label or 'unnamed'}): {e}"
            logger.warning("Dropping classifier %s", reason)
            result.dropped.append(reason)

    logger.info("Mapped %d classifier items, dropped %d", len(result.items), len(result.dropped))
    return result
