"""
Inventory store contract.

The closet inventory is owned by an external store; the pipeline only ever
reads a snapshot of it.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Sequence, Tuple

from closet_vision.models.closet import InventoryItem


class InventoryStore(ABC):
    """Read-only view of a user's closet."""

    @abstractmethod
    def list_items(self) -> Sequence[InventoryItem]:
        """Return a snapshot of all inventory items."""


class InMemoryInventoryStore(InventoryStore):
    """Inventory held in memory (tests, previews, callers that already loaded the closet)."""

    def __init__(self, items: Iterable[InventoryItem] = ()):
        self._items: Tuple[InventoryItem, ...] = tuple(items)

    def list_items(self) -> Tuple[InventoryItem, ...]:
        return self._items
