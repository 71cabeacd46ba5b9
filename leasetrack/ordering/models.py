"""
Order Maintenance Data Models

Plain in-memory shapes shared by the key maintenance functions,
the reorder controller and the persistence adapter.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union
from uuid import UUID

ItemId = Union[UUID, str, int]

T = TypeVar("T")


@dataclass
class OrderedItem:
    """A row in a user-sortable list (fractional scheme)."""
    id: ItemId
    order_key: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.data, "id": str(self.id), "order_key": self.order_key}


@dataclass
class IndexedItem:
    """A row in a user-sortable list (dense integer scheme)."""
    id: ItemId
    order_index: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.data, "id": str(self.id), "order_index": self.order_index}


@dataclass
class MovePlan(Generic[T]):
    """
    Result of planning a single move.

    ordered holds the whole list after the move with new order values
    applied; updates holds only the items that must be written back.
    """
    ordered: List[T]
    updates: List[T]
    moved_index: int
    reindexed: bool = False

    @property
    def moved_item(self) -> T:
        return self.ordered[self.moved_index]


def array_move(items: List[T], old_index: int, new_index: int) -> List[T]:
    """
    Move one element using splice semantics.

    The element at old_index is removed, then inserted so that it ends up
    at new_index. The input list is not modified.

    Raises:
        IndexError: If either index is outside the list
    """
    size = len(items)
    if not 0 <= old_index < size:
        raise IndexError(f"old_index {old_index} out of range for {size} items")
    if not 0 <= new_index < size:
        raise IndexError(f"new_index {new_index} out of range for {size} items")

    moved = list(items)
    item = moved.pop(old_index)
    moved.insert(new_index, item)
    return moved
