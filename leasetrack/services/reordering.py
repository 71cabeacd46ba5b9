"""
Reordering Service

Keeps one ReorderController per rendered list, i.e. per
(project, collection) pair. Lists are independent: a project's roadmap
and its properties can be reordered at the same time, while two moves on
the same list are serialized by that list's controller.

After every move, committed or rolled back, the controller reloads the
list from the store so local order converges on server truth.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from leasetrack.database import (
    dashboard_card_persister,
    fetch_ordered_items,
    get_collection_model,
    get_dashboard_cards,
    get_db_context,
    order_key_persister,
    reindex_collection,
    save_dashboard_card_order,
)
from leasetrack.ordering import OrderedItem, ReorderController, ReorderResult, reindex_order_keys

logger = logging.getLogger(__name__)

# Pseudo-collection for the project dashboard card layout
DASHBOARD_CARDS = "dashboard_cards"


@dataclass
class ReorderOutcome:
    """What a reorder request did and the list it left behind."""
    result: ReorderResult
    items: List[OrderedItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result in (ReorderResult.COMMITTED, ReorderResult.NOOP)


def load_items(project_id: Any, collection: str) -> List[OrderedItem]:
    """Load a list from the store, sorted by key."""
    with get_db_context() as db:
        if collection == DASHBOARD_CARDS:
            return [
                OrderedItem(
                    id=card["id"],
                    order_key=card["order_key"],
                    data={"type": card["type"], "title": card["title"]},
                )
                for card in get_dashboard_cards(db, project_id)
            ]
        return fetch_ordered_items(db, collection, project_id)


def reindex_items(project_id: Any, collection: str) -> List[OrderedItem]:
    """Persist fresh, evenly spaced keys for a whole list."""
    if collection != DASHBOARD_CARDS:
        with get_db_context() as db:
            return reindex_collection(db, collection, project_id)

    items = reindex_order_keys(load_items(project_id, collection))
    with get_db_context() as db:
        save_dashboard_card_order(
            db,
            project_id,
            [{**item.data, "id": item.id, "order_key": item.order_key} for item in items],
        )
    logger.info(f"Reindexed {len(items)} dashboard cards for project {project_id}")
    return items


class ReorderService:
    """
    Registry of reorder controllers.

    Usage:
        service = ReorderService()
        outcome = await service.reorder(project_id, "properties", 0, 2)
        if not outcome.succeeded:
            ...
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Write timeout passed to every controller (None = settings)
        """
        self.timeout = timeout
        self._controllers: Dict[Tuple[str, str], ReorderController] = {}
        # Lists changed while a move was in flight; reloaded once idle
        self._stale: Set[Tuple[str, str]] = set()

    def _make_controller(self, project_id: Any, collection: str, items: List[OrderedItem]) -> ReorderController:
        if collection == DASHBOARD_CARDS:
            persist = dashboard_card_persister(project_id)
        else:
            persist = order_key_persister(collection)

        async def refetch(_outcome: Any) -> List[OrderedItem]:
            return await asyncio.to_thread(load_items, project_id, collection)

        return ReorderController(
            items,
            persist=persist,
            on_success=refetch,
            on_error=refetch,
            timeout=self.timeout,
            name=f"{collection}:{project_id}",
        )

    async def get_controller(self, project_id: Any, collection: str) -> ReorderController:
        """Return the list's controller, loading the list on first use."""
        if collection != DASHBOARD_CARDS:
            get_collection_model(collection)

        key = (str(project_id), collection)
        controller = self._controllers.get(key)
        if controller is not None and key in self._stale and not controller.is_reordering:
            del self._controllers[key]
            self._stale.discard(key)
            controller = None
        if controller is None:
            items = await asyncio.to_thread(load_items, project_id, collection)
            # Another request may have created it while loading
            controller = self._controllers.setdefault(key, self._make_controller(project_id, collection, items))
            logger.debug(f"Created reorder controller for {collection} of project {project_id}")
        return controller

    async def reorder(self, project_id: Any, collection: str, old_index: int, new_index: int) -> ReorderOutcome:
        """
        Apply a move event to a list.

        Raises:
            IndexError: If an index is outside the list
            UnknownCollectionError: If the collection does not exist
        """
        controller = await self.get_controller(project_id, collection)
        result = await controller.handle_reorder(old_index, new_index)
        return ReorderOutcome(result=result, items=controller.items, error=controller.reorder_error)

    def forget(self, project_id: Any, collection: str) -> bool:
        """
        Drop a list's cached controller so the next request reloads it.

        A controller with a move in flight is kept and marked stale; it is
        reloaded on the first request after the move has settled.

        Returns:
            False if the controller was busy and could only be marked stale
        """
        key = (str(project_id), collection)
        controller = self._controllers.get(key)
        if controller is None:
            return True
        if controller.is_reordering:
            self._stale.add(key)
            return False
        del self._controllers[key]
        self._stale.discard(key)
        return True
