"""
Repository Layer - Clean Interface for Ordered Collections

Reads and writes the order of user-sortable lists. Handles all
SQLAlchemy complexity internally.

Every write that touches more than one row runs in a single transaction:
either every new order value is stored or none is.
"""

import asyncio
import json
import logging
import threading
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import Date, Enum, bindparam, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leasetrack.ordering.models import IndexedItem, MovePlan, OrderedItem
from leasetrack.ordering.maintenance import plan_dense_move, reindex_order_keys
from leasetrack.utils.ordering import (
    keys_between,
    sort_by_order_key,
    validate_order_key,
)

from .models import ORDERED_COLLECTIONS, Project, payload_columns, row_payload
from .session import get_db_context

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The store rejected a write (nothing was applied)."""
    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class UnknownCollectionError(PersistenceError):
    """No ordered collection with this name."""


# =============================================================================
# HELPERS
# =============================================================================

def get_collection_model(collection_name: str):
    """Resolve a collection name to its model."""
    model = ORDERED_COLLECTIONS.get(collection_name)
    if model is None:
        raise UnknownCollectionError(f"Unknown collection: {collection_name}", collection_name)
    return model


def _to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise PersistenceError(f"Invalid item id: {value!r}") from None


def _to_ordered_item(row) -> OrderedItem:
    return OrderedItem(id=row.id, order_key=row.order_key, data=row_payload(row))


def _to_indexed_item(row) -> IndexedItem:
    return IndexedItem(id=row.id, order_index=row.order_index, data=row_payload(row))


def _coerce_payload(model, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert API-style values (enum values, ISO dates) to column values.

    Raises:
        ValueError: On unknown fields or invalid values
    """
    columns = payload_columns(model)
    unknown = set(data) - set(columns)
    if unknown:
        raise ValueError(f"Unknown fields for {model.__tablename__}: {', '.join(sorted(unknown))}")

    values = {}
    for name, value in data.items():
        column_type = columns[name].type
        if isinstance(value, str) and isinstance(column_type, Enum) and column_type.enum_class:
            value = column_type.enum_class(value)
        elif isinstance(value, str) and isinstance(column_type, Date):
            value = date.fromisoformat(value)
        values[name] = value
    return values


def _check_distinct_keys(db: Session, model, project_ids: Iterable[UUID]) -> None:
    """Fail if any project's list now holds two rows with the same key."""
    duplicates = db.execute(
        select(model.project_id, model.order_key)
        .where(model.project_id.in_(list(project_ids)))
        .group_by(model.project_id, model.order_key)
        .having(func.count() > 1)
    ).all()
    if duplicates:
        raise PersistenceError(
            f"Write would leave {len(duplicates)} duplicate order key(s) in {model.__tablename__}",
            model.__tablename__,
        )


def _check_abandoned(abandoned: Optional[threading.Event], collection_name: str) -> None:
    if abandoned is not None and abandoned.is_set():
        raise PersistenceError(f"Write to {collection_name} abandoned by caller", collection_name)


# =============================================================================
# READ
# =============================================================================

def fetch_ordered_items(db: Session, collection_name: str, project_id: Any) -> List[OrderedItem]:
    """
    Fetch all items of a project's list, sorted by order key.

    Sorting happens here with plain string comparison so the result does
    not depend on the database collation.
    """
    model = get_collection_model(collection_name)
    rows = db.query(model).filter(model.project_id == _to_uuid(project_id)).all()
    return sort_by_order_key([_to_ordered_item(row) for row in rows])


def fetch_indexed_items(db: Session, collection_name: str, project_id: Any) -> List[IndexedItem]:
    """Fetch all items of a project's list, sorted by order_index (missing last)."""
    model = get_collection_model(collection_name)
    rows = db.query(model).filter(model.project_id == _to_uuid(project_id)).all()
    items = [_to_indexed_item(row) for row in rows]
    return sorted(items, key=lambda item: (item.order_index is None, item.order_index or 0))


# =============================================================================
# WRITE - ORDER VALUES
# =============================================================================

def _batch_update(db: Session, model, column: str, rows: List[Dict[str, Any]]) -> None:
    ids = [row["b_id"] for row in rows]
    if len(set(ids)) != len(ids):
        raise PersistenceError("Duplicate item ids in batch", model.__tablename__)

    found = db.execute(
        select(model.id, model.project_id).where(model.id.in_(ids))
    ).all()
    if len(found) != len(ids):
        missing = len(ids) - len(found)
        raise PersistenceError(f"{missing} item(s) not found in {model.__tablename__}", model.__tablename__)

    table = model.__table__
    stmt = (
        update(table)
        .where(table.c.id == bindparam("b_id"))
        .values({column: bindparam("b_value"), "updated_at": bindparam("b_updated_at")})
    )
    now = datetime.utcnow()
    for row in rows:
        row["b_updated_at"] = now
    # Core executemany in the session's transaction (one round trip)
    db.connection().execute(stmt, rows)
    # Loaded rows no longer match the table
    db.expire_all()

    if column == "order_key":
        _check_distinct_keys(db, model, {project_id for _, project_id in found})


def batch_update_order_keys(
    db: Session,
    items: Sequence[OrderedItem],
    collection_name: str,
    abandoned: Optional[threading.Event] = None,
) -> None:
    """
    Store new order keys for several items at once.

    All-or-nothing: unknown ids, invalid keys, duplicate keys within a
    list or any database error roll the whole batch back.
    If abandoned is set by the time the rows are written, the batch is
    rolled back instead of committed.

    Raises:
        PersistenceError: If the store rejects any row
    """
    if not items:
        return

    model = get_collection_model(collection_name)
    for item in items:
        if not validate_order_key(item.order_key):
            raise PersistenceError(f"Invalid order key {item.order_key!r} for item {item.id}", collection_name)

    rows = [{"b_id": _to_uuid(item.id), "b_value": item.order_key} for item in items]
    try:
        _batch_update(db, model, "order_key", rows)
        _check_abandoned(abandoned, collection_name)
        db.commit()
    except PersistenceError as e:
        db.rollback()
        logger.error(f"Failed to batch update order keys in {collection_name}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to batch update order keys in {collection_name}: {e}")
        raise PersistenceError(f"Failed to update order keys in {collection_name}: {e}", collection_name) from e

    logger.info(f"Successfully updated {len(items)} order keys in {collection_name}")


def batch_update_order_indexes(
    db: Session,
    items: Sequence[IndexedItem],
    collection_name: str,
    abandoned: Optional[threading.Event] = None,
) -> None:
    """Store new dense positions for several items in one transaction."""
    if not items:
        return

    model = get_collection_model(collection_name)
    rows = [{"b_id": _to_uuid(item.id), "b_value": item.order_index} for item in items]
    try:
        _batch_update(db, model, "order_index", rows)
        _check_abandoned(abandoned, collection_name)
        db.commit()
    except PersistenceError as e:
        db.rollback()
        logger.error(f"Failed to batch update order indexes in {collection_name}: {e}")
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to batch update order indexes in {collection_name}: {e}")
        raise PersistenceError(f"Failed to update order indexes in {collection_name}: {e}", collection_name) from e

    logger.info(f"Successfully updated {len(items)} order indexes in {collection_name}")


def update_item_order(
    db: Session,
    items: Sequence[IndexedItem],
    old_index: int,
    new_index: int,
    table_name: str,
) -> List[IndexedItem]:
    """
    Dense scheme: move one item and rewrite every position.

    Returns:
        Items in their new order with order_index 0..n-1

    Raises:
        PersistenceError: If the write fails (no position is changed)
    """
    plan = plan_dense_move(items, old_index, new_index)
    batch_update_order_indexes(db, plan.updates, table_name)
    return plan.ordered


def reindex_collection(db: Session, collection_name: str, project_id: Any) -> List[OrderedItem]:
    """Rewrite every key of a project's list with fresh, evenly spaced keys."""
    items = fetch_ordered_items(db, collection_name, project_id)
    reindexed = reindex_order_keys(items)
    batch_update_order_keys(db, reindexed, collection_name)
    logger.info(f"Reindexed {len(reindexed)} items in {collection_name} for project {project_id}")
    return reindexed


# =============================================================================
# WRITE - ITEMS
# =============================================================================

def append_item(db: Session, collection_name: str, project_id: Any, data: Dict[str, Any]) -> OrderedItem:
    """
    Insert an item at the end of a project's list.

    Raises:
        ValueError: On unknown fields or invalid values
        PersistenceError: If the insert fails
    """
    return insert_items(db, collection_name, project_id, [data])[0]


def insert_items(
    db: Session,
    collection_name: str,
    project_id: Any,
    rows: Sequence[Dict[str, Any]],
    at_start: bool = False,
) -> List[OrderedItem]:
    """
    Insert several items with evenly spaced keys, keeping their given order.

    Args:
        rows: Column values per item
        at_start: Place the new items before the existing ones (imports)
                  instead of after them
    """
    if not rows:
        return []

    model = get_collection_model(collection_name)
    pid = _to_uuid(project_id)
    values = [_coerce_payload(model, row) for row in rows]

    try:
        existing_keys = sorted(db.scalars(select(model.order_key).where(model.project_id == pid)).all())
        if at_start:
            new_keys = keys_between(None, existing_keys[0] if existing_keys else None, len(values))
        else:
            new_keys = keys_between(existing_keys[-1] if existing_keys else None, None, len(values))

        objects = [
            model(project_id=pid, order_key=key, **row_values)
            for key, row_values in zip(new_keys, values)
        ]
        db.add_all(objects)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to insert {len(values)} items into {collection_name}: {e}")
        raise PersistenceError(f"Failed to insert into {collection_name}: {e}", collection_name) from e

    logger.info(f"Inserted {len(objects)} items into {collection_name} for project {pid}")
    return [_to_ordered_item(obj) for obj in objects]


def delete_item(db: Session, collection_name: str, item_id: Any) -> bool:
    """
    Delete an item. Siblings keep their keys; nothing is renumbered.

    Returns:
        True if a row was deleted
    """
    model = get_collection_model(collection_name)
    try:
        row = db.get(model, _to_uuid(item_id))
        if row is None:
            return False
        db.delete(row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to delete from {collection_name}: {e}", collection_name) from e

    logger.info(f"Deleted item {item_id} from {collection_name}")
    return True


# =============================================================================
# DASHBOARD CARD ORDER
# =============================================================================

_DEFAULT_CARD_KEYS = keys_between(None, None, 5)

DEFAULT_DASHBOARD_CARDS: List[Dict[str, str]] = [
    {"id": "updates", "type": "updates", "title": "Recent Updates", "order_key": _DEFAULT_CARD_KEYS[0]},
    {"id": "availability", "type": "availability", "title": "Client Tour Availability", "order_key": _DEFAULT_CARD_KEYS[1]},
    {"id": "properties", "type": "properties", "title": "Properties of Interest", "order_key": _DEFAULT_CARD_KEYS[2]},
    {"id": "roadmap", "type": "roadmap", "title": "Project Roadmap", "order_key": _DEFAULT_CARD_KEYS[3]},
    {"id": "documents", "type": "documents", "title": "Project Documents", "order_key": _DEFAULT_CARD_KEYS[4]},
]


def load_dashboard_card_order(raw: Any, defaults: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    """
    Parse a stored dashboard card order.

    Accepts a list or a JSON string. Cards without a string order_key are
    dropped. Missing or unreadable data returns the defaults.
    """
    if not raw:
        return [dict(card) for card in defaults]

    try:
        if isinstance(raw, str):
            cards = json.loads(raw)
        elif isinstance(raw, list):
            cards = raw
        else:
            cards = [raw]
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to read dashboard card order, using default: {e}")
        return [dict(card) for card in defaults]

    valid = [
        card for card in cards
        if isinstance(card, dict) and isinstance(card.get("order_key"), str)
    ]
    return sort_by_order_key([
        {
            "id": str(card.get("id") or ""),
            "type": card.get("type") or "updates",
            "title": str(card.get("title") or ""),
            "order_key": card["order_key"],
        }
        for card in valid
    ])


def get_dashboard_cards(db: Session, project_id: Any) -> List[Dict[str, str]]:
    """Dashboard cards for a project, sorted by order key."""
    project = db.get(Project, _to_uuid(project_id))
    if project is None:
        raise PersistenceError(f"Project not found: {project_id}", "projects")
    return load_dashboard_card_order(project.dashboard_card_order, DEFAULT_DASHBOARD_CARDS)


def save_dashboard_card_order(
    db: Session,
    project_id: Any,
    cards: Sequence[Dict[str, str]],
    abandoned: Optional[threading.Event] = None,
) -> None:
    """
    Store a project's dashboard card order.

    Raises:
        PersistenceError: If a card has no valid order_key or the write fails
    """
    normalized = []
    for card in cards:
        if not validate_order_key(card.get("order_key")):
            raise PersistenceError(f"Card {card.get('id')!r} has no valid order_key", "projects")
        normalized.append({
            "id": card["id"],
            "type": card.get("type"),
            "title": card.get("title"),
            "order_key": card["order_key"],
        })

    try:
        result = db.execute(
            update(Project)
            .where(Project.id == _to_uuid(project_id))
            .values(dashboard_card_order=normalized, updated_at=datetime.utcnow())
        )
        if result.rowcount == 0:
            raise PersistenceError(f"Project not found: {project_id}", "projects")
        _check_abandoned(abandoned, "projects")
        db.commit()
    except PersistenceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to save dashboard order to database: {e}")
        raise PersistenceError(f"Failed to save dashboard order: {e}", "projects") from e


# =============================================================================
# ASYNC ADAPTERS (for ReorderController)
# =============================================================================

PersistFn = Callable[[MovePlan], Awaitable[None]]


async def _run_write(write: Callable[[MovePlan, threading.Event], None], plan: MovePlan) -> None:
    """
    Run a blocking write in a worker thread.

    When the caller stops waiting (timeout or cancellation) the write is
    told to roll back instead of committing, and the cancellation is only
    passed on once the worker has finished, so the store is settled by the
    time the caller handles it.
    """
    abandoned = threading.Event()
    worker = asyncio.ensure_future(asyncio.to_thread(write, plan, abandoned))
    try:
        await asyncio.shield(worker)
    except asyncio.CancelledError:
        abandoned.set()
        try:
            await worker
        except PersistenceError as e:
            logger.info(f"Abandoned write rolled back: {e}")
        raise


def order_key_persister(collection_name: str) -> PersistFn:
    """Persist function writing a plan's changed order keys."""
    get_collection_model(collection_name)

    def _write(plan: MovePlan, abandoned: threading.Event) -> None:
        with get_db_context() as db:
            batch_update_order_keys(db, plan.updates, collection_name, abandoned)

    async def persist(plan: MovePlan) -> None:
        await _run_write(_write, plan)

    return persist


def order_index_persister(collection_name: str) -> PersistFn:
    """Persist function writing a dense plan's positions."""
    get_collection_model(collection_name)

    def _write(plan: MovePlan, abandoned: threading.Event) -> None:
        with get_db_context() as db:
            batch_update_order_indexes(db, plan.updates, collection_name, abandoned)

    async def persist(plan: MovePlan) -> None:
        await _run_write(_write, plan)

    return persist


def dashboard_card_persister(project_id: Any) -> PersistFn:
    """Persist function writing a project's whole dashboard card order."""

    def _write(plan: MovePlan, abandoned: threading.Event) -> None:
        cards = [{**item.data, "id": str(item.id), "order_key": item.order_key} for item in plan.ordered]
        with get_db_context() as db:
            save_dashboard_card_order(db, project_id, cards, abandoned)

    async def persist(plan: MovePlan) -> None:
        await _run_write(_write, plan)

    return persist
