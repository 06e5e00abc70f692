"""In-memory item store with undoable deletes."""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

from .expiry import effective_expiry, urgency
from .item_normalizer import clean_name
from .models import ReceiptItem, SortKey, StorageMode, UndoAction, Urgency
from .timestamps import ensure_aware, local_now

logger = logging.getLogger(__name__)

DEFAULT_UNDO_WINDOW = timedelta(seconds=5)

ItemRef = ReceiptItem | UUID | str


def _item_id(ref: ItemRef) -> UUID | None:
    """Id named by a reference; None for a string that is not a UUID."""
    if isinstance(ref, ReceiptItem):
        return ref.id
    if isinstance(ref, str):
        try:
            return UUID(ref)
        except ValueError:
            return None
    return ref


class ItemStore:
    """Holds the session's items and the single live undo action.

    Reads never see a half-applied batch: appends publish a freshly built list.
    Any operation naming an id that is no longer present is a silent no-op.
    """

    def __init__(
        self,
        items: Iterable[ReceiptItem] | None = None,
        undo_window: timedelta = DEFAULT_UNDO_WINDOW,
    ):
        """Initialize the store.

        Args:
            items: Optional initial items, kept in order
            undo_window: How long an undo action stays live
        """
        self._items: list[ReceiptItem] = list(items or [])
        self.undo_window = undo_window
        self.pending_undo: UndoAction | None = None

    @property
    def items(self) -> list[ReceiptItem]:
        """Snapshot of the current items in store order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def index_of(self, item: ItemRef) -> int | None:
        item_id = _item_id(item)
        for i, existing in enumerate(self._items):
            if existing.id == item_id:
                return i
        return None

    def get(self, item: ItemRef) -> ReceiptItem | None:
        index = self.index_of(item)
        return self._items[index] if index is not None else None

    def add(self, items: Iterable[ReceiptItem]) -> list[ReceiptItem]:
        """Append items in one step.

        Args:
            items: Items to append, each carrying its own id

        Returns:
            The appended items
        """
        added = list(items)
        if added:
            self._items = [*self._items, *added]
            logger.debug("Added %d items (store size %d)", len(added), len(self._items))
        return added

    def remove_one(self, item: ItemRef, now: datetime | None = None) -> UndoAction | None:
        """Remove an item and offer an undo.

        Args:
            item: Item or id to remove
            now: Current time, used for the undo window

        Returns:
            The new live undo action, or None if the item was not present
        """
        index = self.index_of(item)
        if index is None:
            logger.debug("remove_one: %s not in store", _item_id(item))
            return None

        removed = self._items.pop(index)

        def restore() -> None:
            self._items.insert(min(index, len(self._items)), removed)

        return self._publish_undo(f"Removed “{removed.name}”", restore, now)

    def remove_many(
        self, items: Iterable[ItemRef], now: datetime | None = None
    ) -> UndoAction | None:
        """Remove several items and offer a single undo for the batch.

        Undo restores each item at its original index, so the batch comes back
        in its original order relative to the surviving items.

        Args:
            items: Items or ids to remove
            now: Current time, used for the undo window

        Returns:
            The new live undo action, or None if nothing was removed
        """
        refs = list(items)
        if not refs:
            return None
        if len(refs) == 1:
            return self.remove_one(refs[0], now=now)

        positions: dict[int, ReceiptItem] = {}
        for ref in refs:
            index = self.index_of(ref)
            if index is not None:
                positions[index] = self._items[index]
        indexed = sorted(positions.items())

        if not indexed:
            logger.debug("remove_many: none of %d items in store", len(refs))
            return None

        for index, _ in reversed(indexed):
            del self._items[index]

        def restore() -> None:
            for index, removed in indexed:
                self._items.insert(min(index, len(self._items)), removed)

        return self._publish_undo("Deleted multiple items", restore, now)

    def toggle_used(self, item: ItemRef, now: datetime | None = None) -> UndoAction | None:
        """Flip an item's used flag, stamping or clearing ``used_at``.

        Undo restores the previous flag and timestamp as they were.

        Args:
            item: Item or id to toggle
            now: Time recorded as ``used_at``

        Returns:
            The new live undo action, or None if the item was not present
        """
        target = self.get(item)
        if target is None:
            logger.debug("toggle_used: %s not in store", _item_id(item))
            return None

        now = ensure_aware(now or datetime.now(UTC))
        previous = (target.is_used, target.used_at)
        target.is_used = not target.is_used
        target.used_at = now if target.is_used else None

        def restore() -> None:
            target.is_used, target.used_at = previous

        message = f"Marked “{target.name}” used" if target.is_used else f"Unmarked “{target.name}”"
        return self._publish_undo(message, restore, now)

    def undo(self, action: UndoAction | None = None, now: datetime | None = None) -> bool:
        """Run the live undo action.

        Args:
            action: Action to run; defaults to the live one. Anything other
                than the live action is ignored.
            now: Current time, checked against the undo window

        Returns:
            True if the store was restored
        """
        live = self.pending_undo
        if live is None or (action is not None and action is not live):
            logger.debug("undo: action is not live")
            return False
        self.pending_undo = None
        if live.consumed or live.is_expired(ensure_aware(now) if now else None):
            logger.debug("undo: %r expired", live.message)
            return False

        live.consumed = True
        live.restore()
        logger.debug("undo: restored %r", live.message)
        return True

    def dismiss_undo(self) -> None:
        self.pending_undo = None

    def _publish_undo(
        self, message: str, restore: Callable[[], None], now: datetime | None
    ) -> UndoAction:
        created = ensure_aware(now) if now else datetime.now(UTC)
        action = UndoAction(
            message=message,
            expires_at=created + self.undo_window,
            restore=restore,
        )
        self.pending_undo = action
        return action

    # Field edits mutate in place and do not offer undo.

    def _edit(self, item: ItemRef, op: str) -> ReceiptItem | None:
        target = self.get(item)
        if target is None:
            logger.debug("%s: %s not in store", op, _item_id(item))
        return target

    def set_storage(self, item: ItemRef, mode: StorageMode) -> ReceiptItem | None:
        target = self._edit(item, "set_storage")
        if target is not None:
            target.selected_storage = mode
        return target

    def set_override(self, item: ItemRef, expiry: datetime | None) -> ReceiptItem | None:
        """Set or clear the user's explicit expiry."""
        target = self._edit(item, "set_override")
        if target is not None:
            target.user_override_expiry = ensure_aware(expiry) if expiry else None
        return target

    def set_quantity(self, item: ItemRef, quantity: int) -> ReceiptItem | None:
        """Set quantity, clamped to at least one."""
        target = self._edit(item, "set_quantity")
        if target is not None:
            target.quantity = max(1, int(quantity))
        return target

    def rename(self, item: ItemRef, name: str) -> ReceiptItem | None:
        target = self._edit(item, "rename")
        if target is not None:
            target.name = clean_name(name)
        return target

    def update_item(
        self,
        item: ItemRef,
        name: str | None = None,
        quantity: int | None = None,
        storage: StorageMode | None = None,
        override_expiry: datetime | None = None,
    ) -> ReceiptItem | None:
        """Apply an edit-sheet save; None leaves a field unchanged.

        Args:
            item: Item or id to edit
            name: New display name (trimmed)
            quantity: New quantity (clamped to at least one)
            storage: New selected storage mode
            override_expiry: New user override expiry

        Returns:
            The updated item, or None if it was not present
        """
        target = self._edit(item, "update_item")
        if target is None:
            return None
        if name is not None:
            target.name = clean_name(name)
        if quantity is not None:
            target.quantity = max(1, int(quantity))
        if storage is not None:
            target.selected_storage = storage
        if override_expiry is not None:
            target.user_override_expiry = ensure_aware(override_expiry)
        return target

    def get_items(
        self,
        now: datetime | None = None,
        query: str | None = None,
        storages: Iterable[StorageMode] | None = None,
        expired: bool | None = None,
        purchased_on: date | None = None,
        predicate: Callable[[ReceiptItem], bool] | None = None,
        sort: SortKey | None = None,
        descending: bool = False,
    ) -> list[ReceiptItem]:
        """Filtered, sorted projection of the store.

        Args:
            now: Current time for urgency and local dates
            query: Case-insensitive substring of name or display name
            storages: Keep only items filed under these storage modes
            expired: True for expired items only, False for the rest
            purchased_on: Keep only items bought on this local day
            predicate: Extra caller filter
            sort: Sort key; None keeps store order
            descending: Reverse the sort order

        Returns:
            Matching items
        """
        now = ensure_aware(now) if now else local_now()
        items = list(self._items)

        if query and query.strip():
            q = query.strip().lower()
            items = [i for i in items if q in i.name.lower() or q in i.display_name.lower()]
        if storages is not None:
            allowed = set(storages)
            items = [i for i in items if i.selected_storage in allowed]
        if expired is not None:
            items = [i for i in items if (urgency(i, now) == Urgency.EXPIRED) == expired]
        if purchased_on is not None:
            items = [
                i for i in items if i.purchased_at.astimezone(now.tzinfo).date() == purchased_on
            ]
        if predicate is not None:
            items = [i for i in items if predicate(i)]

        if sort is not None:
            items.sort(key=sort_key_func(sort, now), reverse=descending)
        return items


def sort_key_func(sort: SortKey, now: datetime) -> Callable[[ReceiptItem], object]:
    """Key function for a sort key; unknown expiries sort last."""
    far_future = datetime.max.replace(tzinfo=UTC)
    keys: dict[SortKey, Callable[[ReceiptItem], object]] = {
        SortKey.PURCHASE_DATE: lambda i: i.purchased_at,
        SortKey.NAME: lambda i: i.name.casefold(),
        SortKey.EXPIRY: lambda i: effective_expiry(i) or far_future,
        SortKey.PRICE: lambda i: i.effective_total_cost,
        SortKey.STORAGE: lambda i: i.selected_storage.rank,  # type: ignore[union-attr]
        SortKey.URGENCY: lambda i: urgency(i, now).rank,
        SortKey.QUANTITY: lambda i: i.quantity,
    }
    return keys[sort]
