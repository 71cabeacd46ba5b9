"""
Order Key Maintenance

Keeps fractional order keys healthy:
1. Monitor key length (long keys mean repeated inserts at the same slot)
2. Reindex a whole collection with fresh, evenly spaced keys
3. Plan a single move, falling back to reindexing when needed

Everything here is pure: nothing touches the database.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from leasetrack.utils.config import get_settings
from leasetrack.utils.ordering import KeyGenerationExhausted, key_between, keys_between

from .models import IndexedItem, MovePlan, OrderedItem, array_move

logger = logging.getLogger(__name__)


class KeyTooLong(Exception):
    """Generated key exceeds the length threshold."""
    def __init__(self, key: str, max_length: int):
        super().__init__(f"Generated key is too long ({len(key)} chars, threshold {max_length})")
        self.key = key
        self.length = len(key)
        self.max_length = max_length


def _resolve_max_length(max_length: Optional[int]) -> int:
    if max_length is not None:
        return max_length
    return get_settings().ORDER_KEY_MAX_LENGTH


# =============================================================================
# HEALTH MONITOR
# =============================================================================

@dataclass
class KeyStats:
    """Key length statistics for one collection."""
    count: int
    average_length: float
    max_length: int
    threshold: int

    @property
    def needs_reindexing(self) -> bool:
        return self.max_length > self.threshold

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "average_length": round(self.average_length, 1),
            "max_length": self.max_length,
            "threshold": self.threshold,
            "needs_reindexing": self.needs_reindexing,
        }


def needs_reindexing(items: Sequence[OrderedItem], max_length: Optional[int] = None) -> bool:
    """Check if any key in the list is longer than the threshold."""
    limit = _resolve_max_length(max_length)
    return any(len(item.order_key) > limit for item in items)


def key_stats(items: Sequence[OrderedItem], max_length: Optional[int] = None) -> KeyStats:
    """Compute key length statistics."""
    limit = _resolve_max_length(max_length)
    lengths = [len(item.order_key) for item in items]
    if not lengths:
        return KeyStats(count=0, average_length=0.0, max_length=0, threshold=limit)
    return KeyStats(
        count=len(lengths),
        average_length=sum(lengths) / len(lengths),
        max_length=max(lengths),
        threshold=limit,
    )


def log_key_stats(
    items: Sequence[OrderedItem],
    context: str,
    max_length: Optional[int] = None,
) -> KeyStats:
    """Log key length statistics, warning when keys are getting long."""
    stats = key_stats(items, max_length)
    if stats.count == 0:
        return stats

    logger.info(
        f"[{context}] Key stats: avg={stats.average_length:.1f}, "
        f"max={stats.max_length}, items={stats.count}"
    )
    if stats.needs_reindexing:
        logger.warning(
            f"[{context}] Keys are getting long! Max length: {stats.max_length} "
            f"(threshold: {stats.threshold})"
        )
    return stats


# =============================================================================
# REINDEXER
# =============================================================================

def reindex_order_keys(items: Sequence[OrderedItem]) -> List[OrderedItem]:
    """
    Regenerate every key with optimal spacing.

    Args:
        items: Items in their current display order

    Returns:
        New list in the same order with fresh keys
    """
    if not items:
        return []

    new_keys = keys_between(None, None, len(items))
    return [replace(item, order_key=key) for item, key in zip(items, new_keys)]


# =============================================================================
# SAFE KEY GENERATION
# =============================================================================

def _reindex_plan(reordered: List[OrderedItem], new_index: int, reason: str) -> MovePlan[OrderedItem]:
    logger.warning(f"Falling back to full reindexing of {len(reordered)} items: {reason}")
    reindexed = reindex_order_keys(reordered)
    updates = [
        new for new, old in zip(reindexed, reordered)
        if new.order_key != old.order_key
    ]
    return MovePlan(ordered=reindexed, updates=updates, moved_index=new_index, reindexed=True)


def plan_move(
    items: Sequence[OrderedItem],
    old_index: int,
    new_index: int,
    max_length: Optional[int] = None,
) -> MovePlan[OrderedItem]:
    """
    Plan moving one item to a new slot.

    Normally only the moved item gets a new key. If no key can be produced
    between the new neighbors, or the key would be too long, the whole
    reordered list is reindexed and every changed item is returned in updates.

    Args:
        items: Items in current display order
        old_index: Position of the dragged item
        new_index: Target position after removal (splice semantics)
        max_length: Key length threshold (defaults to settings)

    Returns:
        MovePlan with the new order and the items to persist
    """
    if old_index == new_index:
        array_move(items, old_index, new_index)  # bounds check
        return MovePlan(ordered=list(items), updates=[], moved_index=new_index)

    limit = _resolve_max_length(max_length)
    reordered = array_move(items, old_index, new_index)

    prev_key = reordered[new_index - 1].order_key if new_index > 0 else None
    next_key = reordered[new_index + 1].order_key if new_index < len(reordered) - 1 else None

    try:
        new_key = key_between(prev_key, next_key)
        if len(new_key) > limit:
            raise KeyTooLong(new_key, limit)
    except KeyTooLong as e:
        return _reindex_plan(reordered, new_index, f"key too long ({e.length} chars, threshold {e.max_length})")
    except KeyGenerationExhausted as e:
        return _reindex_plan(reordered, new_index, f"key space exhausted ({e})")
    except ValueError as e:
        # Corrupt or duplicate keys in the stored list
        return _reindex_plan(reordered, new_index, f"invalid neighbor keys ({e})")

    moved = replace(reordered[new_index], order_key=new_key)
    reordered[new_index] = moved
    return MovePlan(ordered=reordered, updates=[moved], moved_index=new_index)


def generate_safe_key(
    items: Sequence[OrderedItem],
    old_index: int,
    new_index: int,
    max_length: Optional[int] = None,
) -> str:
    """
    Generate the new key for a moved item, never failing on ordinary inputs.

    Moving an item onto its own slot returns its existing key.
    """
    return plan_move(items, old_index, new_index, max_length).moved_item.order_key


def plan_dense_move(
    items: Sequence[IndexedItem],
    old_index: int,
    new_index: int,
) -> MovePlan[IndexedItem]:
    """
    Plan a move for the dense integer scheme.

    Items are sorted by order_index (missing indexes last), moved, and
    renumbered 0..n-1. Every item is rewritten, so updates is the whole list.
    """
    sorted_items = sorted(
        items,
        key=lambda item: (item.order_index is None, item.order_index or 0),
    )
    reordered = array_move(sorted_items, old_index, new_index)
    ordered = [replace(item, order_index=index) for index, item in enumerate(reordered)]
    return MovePlan(ordered=ordered, updates=list(ordered), moved_index=new_index)
