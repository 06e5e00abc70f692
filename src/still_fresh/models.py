"""Core data models for StillFresh."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from .item_normalizer import canonical_key, format_amount
from .timestamps import format_instant


class StorageMode(str, Enum):
    """Where an item is kept."""

    PANTRY = "pantry"
    FRIDGE = "fridge"
    FREEZER = "freezer"

    @property
    def label(self) -> str:
        return {
            StorageMode.PANTRY: "Pantry",
            StorageMode.FRIDGE: "Refrigerator",
            StorageMode.FREEZER: "Freezer",
        }[self]

    @property
    def rank(self) -> int:
        """Display order: pantry, fridge, freezer."""
        return list(StorageMode).index(self)


class Urgency(str, Enum):
    """How close an item is to its expiry day."""

    EXPIRED = "expired"
    SOON = "soon"
    FRESH = "fresh"

    @property
    def rank(self) -> int:
        return list(Urgency).index(self)


class SortKey(str, Enum):
    """Sort keys for item projections."""

    PURCHASE_DATE = "purchase_date"
    NAME = "name"
    EXPIRY = "expiry"
    PRICE = "price"
    STORAGE = "storage"
    URGENCY = "urgency"
    QUANTITY = "quantity"


class ExpiringSort(str, Enum):
    """Sort orders for the expiring-soon list."""

    SOONEST = "soonest"
    LATEST = "latest"
    URGENCY = "urgency"
    STORAGE = "storage"
    NAME = "name"
    PURCHASED_NEWEST = "purchased_newest"
    QUANTITY_HIGH = "quantity_high"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ExpiryEstimates(BaseModel):
    """Expiry estimate per storage mode. All three are required."""

    pantry: datetime
    fridge: datetime
    freezer: datetime

    @field_validator("pantry", "fridge", "freezer")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)  # type: ignore[return-value]

    @field_serializer("pantry", "fridge", "freezer", when_used="json")
    def serialize_instant(self, v: datetime) -> str:
        return format_instant(v)

    def get(self, mode: StorageMode) -> datetime:
        """Get the estimate for a storage mode."""
        return getattr(self, mode.value)

    def shifted(self, delta: timedelta) -> "ExpiryEstimates":
        """Return a copy with every estimate moved by the same delta."""
        return ExpiryEstimates(
            pantry=self.pantry + delta,
            fridge=self.fridge + delta,
            freezer=self.freezer + delta,
        )


class ReceiptItem(BaseModel):
    """One purchased unit-group from a receipt."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    quantity: int = Field(default=1, ge=1)
    purchased_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    default_storage: StorageMode
    expiry_by_storage: ExpiryEstimates | None = None
    selected_storage: StorageMode | None = None
    user_override_expiry: datetime | None = None
    per_unit_amount: float | None = None
    per_unit_unit: str | None = None
    price_per_unit: float | None = None
    total_price: float | None = None
    unit_price_fallback: float | None = None
    is_used: bool = False
    used_at: datetime | None = None

    @field_validator("purchased_at", "user_override_expiry", "used_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @model_validator(mode="after")
    def derive_defaults(self) -> "ReceiptItem":
        if self.selected_storage is None:
            self.selected_storage = self.default_storage
        if (
            self.unit_price_fallback is None
            and self.price_per_unit is None
            and self.total_price is not None
        ):
            self.unit_price_fallback = self.total_price / max(1, self.quantity)
        if self.is_used != (self.used_at is not None):
            raise ValueError("used_at must be set exactly when is_used is true")
        return self

    @field_serializer("purchased_at", "user_override_expiry", "used_at", when_used="json")
    def serialize_instant(self, v: datetime | None) -> str | None:
        return format_instant(v) if v is not None else None

    @property
    def effective_total_cost(self) -> float:
        """Best-effort total cost that follows quantity edits."""
        q = max(1, self.quantity)
        if self.price_per_unit is not None:
            return self.price_per_unit * q
        if self.unit_price_fallback is not None:
            return self.unit_price_fallback * q
        if self.total_price is not None:
            return self.total_price
        return 0.0

    @property
    def display_name(self) -> str:
        if self.per_unit_amount and self.per_unit_unit and self.per_unit_amount > 0:
            return f"{self.name} ({format_amount(self.per_unit_amount)} {self.per_unit_unit})"
        return self.name

    @property
    def canonical_key(self) -> str:
        """Key grouping repeated purchases of the same item."""
        return canonical_key(self.name)

    @property
    def quantity_label(self) -> str:
        return f"×{self.quantity}"


class WeekBucket(BaseModel):
    """Money per ISO week, split by outcome."""

    week_start: date
    potential: float = 0.0
    wasted: float = 0.0
    saved: float = 0.0

    @property
    def total(self) -> float:
        return self.potential + self.wasted + self.saved


class PurchaseGroup(BaseModel):
    """Items bought on one local calendar day."""

    day: date
    item_count: int
    total_quantity: int
    item_ids: list[UUID] = Field(default_factory=list)


@dataclass(eq=False)
class UndoAction:
    """A reversible store mutation, live until it expires or is replaced."""

    message: str
    expires_at: datetime
    restore: Callable[[], None] = field(repr=False)
    action_title: str = "Undo"
    consumed: bool = False

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at
