"""Staging area for freshly mapped items before they reach the store."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from .item_store import ItemRef, ItemStore, _item_id
from .models import ReceiptItem
from .timestamps import ensure_aware

logger = logging.getLogger(__name__)


class DraftNotFoundError(Exception):
    """Raised when a review session has no draft with the given id."""

    def __init__(self, item_id: UUID | str):
        self.item_id = item_id
        super().__init__(f"Draft with ID '{item_id}' not found")


class ReviewClosedError(Exception):
    """Raised when a confirmed or cancelled review session is used again."""


class PendingReview:
    """Drafts from one scan, reviewed and selectively committed.

    Every draft starts selected. Confirming appends the selected drafts to the
    store in a single ``add`` call; cancelling discards them all.
    """

    def __init__(self, store: ItemStore, drafts: Iterable[ReceiptItem]):
        """Initialize a review session.

        Args:
            store: Store that receives confirmed drafts
            drafts: Mapped items awaiting review, in display order
        """
        self.store = store
        self._drafts = list(drafts)
        self._selected = {d.id for d in self._drafts}
        self.closed = False

    @property
    def drafts(self) -> list[ReceiptItem]:
        return list(self._drafts)

    @property
    def selected(self) -> list[ReceiptItem]:
        """Selected drafts, in draft order."""
        return [d for d in self._drafts if d.id in self._selected]

    @property
    def purchase_date(self) -> datetime | None:
        """Purchase time shown for the batch, taken from the first draft."""
        return self._drafts[0].purchased_at if self._drafts else None

    def is_selected(self, item: ItemRef) -> bool:
        return _item_id(item) in self._selected

    def toggle(self, item: ItemRef) -> bool:
        """Flip a draft's selection.

        Returns:
            Whether the draft is now selected

        Raises:
            DraftNotFoundError: If no draft has this id
        """
        self._check_open()
        item_id = self._index(item)[1]
        if item_id in self._selected:
            self._selected.discard(item_id)
            return False
        self._selected.add(item_id)
        return True

    def apply_purchase_date(self, purchased_at: datetime) -> None:
        """Move every draft to one purchase time.

        Each draft's expiry estimates and override shift by the same amount as
        its own purchase time, so shelf life is preserved.
        """
        self._check_open()
        purchased_at = ensure_aware(purchased_at)
        for draft in self._drafts:
            delta = purchased_at - draft.purchased_at
            draft.purchased_at = purchased_at.astimezone(UTC)
            if draft.expiry_by_storage is not None:
                draft.expiry_by_storage = draft.expiry_by_storage.shifted(delta)
            if draft.user_override_expiry is not None:
                draft.user_override_expiry = draft.user_override_expiry + delta

    def replace_draft(self, edited: ReceiptItem) -> None:
        """Swap in an edited copy of a draft, keeping its position and selection.

        Raises:
            DraftNotFoundError: If no draft has the edited item's id
        """
        self._check_open()
        index, _ = self._index(edited)
        self._drafts[index] = edited

    def confirm(self) -> list[ReceiptItem]:
        """Append the selected drafts to the store and close the session.

        Returns:
            The items added to the store
        """
        self._check_open()
        selected = self.selected
        self.closed = True
        added = self.store.add(selected)
        logger.info("Review confirmed %d of %d drafts", len(added), len(self._drafts))
        return added

    def cancel(self) -> None:
        self._check_open()
        self.closed = True
        logger.debug("Review cancelled, %d drafts discarded", len(self._drafts))
        self._drafts = []
        self._selected.clear()

    def _index(self, item: ItemRef) -> tuple[int, UUID]:
        item_id = _item_id(item)
        for i, draft in enumerate(self._drafts):
            if draft.id == item_id:
                return i, draft.id
        raise DraftNotFoundError(item_id if item_id is not None else str(item))

    def _check_open(self) -> None:
        if self.closed:
            raise ReviewClosedError("Review session is already closed")
