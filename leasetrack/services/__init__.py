"""
Services Layer

Business logic sitting between the API endpoints and the ordering core.
"""

from .reordering import (
    DASHBOARD_CARDS,
    ReorderOutcome,
    ReorderService,
    load_items,
    reindex_items,
)

__all__ = [
    "DASHBOARD_CARDS",
    "ReorderOutcome",
    "ReorderService",
    "load_items",
    "reindex_items",
]
