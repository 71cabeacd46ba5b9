"""
Order Maintenance

Keeps user-sortable lists (roadmap steps, properties, documents) in order
with fractional keys, so a move rewrites one row instead of the whole list.

Usage:
    from leasetrack.ordering import ReorderController, plan_move
    from leasetrack.database import order_key_persister

    controller = ReorderController(items, persist=order_key_persister("properties"))
    await controller.handle_reorder(0, 2)
"""

from .models import OrderedItem, IndexedItem, MovePlan, array_move
from .maintenance import (
    KeyTooLong,
    KeyStats,
    needs_reindexing,
    key_stats,
    log_key_stats,
    reindex_order_keys,
    plan_move,
    generate_safe_key,
    plan_dense_move,
)
from .controller import (
    ReorderController,
    ReorderPhase,
    ReorderResult,
    ConcurrentReorderRejected,
)

__all__ = [
    # Models
    "OrderedItem",
    "IndexedItem",
    "MovePlan",
    "array_move",
    # Maintenance
    "KeyTooLong",
    "KeyStats",
    "needs_reindexing",
    "key_stats",
    "log_key_stats",
    "reindex_order_keys",
    "plan_move",
    "generate_safe_key",
    "plan_dense_move",
    # Controller
    "ReorderController",
    "ReorderPhase",
    "ReorderResult",
    "ConcurrentReorderRejected",
]
