"""
Lease Tracker Database Layer

Usage:
    from leasetrack.database import (
        # Session management
        init_db, get_db, get_db_context,

        # Models
        Project, RoadmapStep, Property, ProjectDocument,

        # Repository
        fetch_ordered_items, batch_update_order_keys, PersistenceError,
    )

    init_db()

    with get_db_context() as db:
        items = fetch_ordered_items(db, "properties", project_id)
"""

# Models
from .models import (
    Base,
    Project,
    RoadmapStep,
    Property,
    ProjectDocument,
    RoadmapStatus,
    PropertyStatus,
    ORDERED_COLLECTIONS,
)

# Session management
from .session import (
    get_db,
    get_db_context,
    init_db,
    check_db_connection,
    configure_engine,
    get_engine,
    get_database_url,
)

# Repository (high-level data operations)
from .repository import (
    PersistenceError,
    UnknownCollectionError,
    get_collection_model,
    # Read
    fetch_ordered_items,
    fetch_indexed_items,
    # Order values
    batch_update_order_keys,
    batch_update_order_indexes,
    update_item_order,
    reindex_collection,
    # Items
    append_item,
    insert_items,
    delete_item,
    # Dashboard cards
    DEFAULT_DASHBOARD_CARDS,
    load_dashboard_card_order,
    get_dashboard_cards,
    save_dashboard_card_order,
    # Async adapters
    order_key_persister,
    order_index_persister,
    dashboard_card_persister,
)

__all__ = [
    # Models
    "Base",
    "Project",
    "RoadmapStep",
    "Property",
    "ProjectDocument",
    "RoadmapStatus",
    "PropertyStatus",
    "ORDERED_COLLECTIONS",
    # Session
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
    "configure_engine",
    "get_engine",
    "get_database_url",
    # Repository
    "PersistenceError",
    "UnknownCollectionError",
    "get_collection_model",
    "fetch_ordered_items",
    "fetch_indexed_items",
    "batch_update_order_keys",
    "batch_update_order_indexes",
    "update_item_order",
    "reindex_collection",
    "append_item",
    "insert_items",
    "delete_item",
    "DEFAULT_DASHBOARD_CARDS",
    "load_dashboard_card_order",
    "get_dashboard_cards",
    "save_dashboard_card_order",
    "order_key_persister",
    "order_index_persister",
    "dashboard_card_persister",
]
