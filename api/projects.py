"""
API Endpoints for Ordered Project Lists

Handles:
1. List a project's roadmap steps, properties, documents or dashboard cards
2. Append and delete items
3. Apply drag & drop move events (old_index -> new_index)
4. Key health report and manual reindexing
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from leasetrack.database import (
    PersistenceError,
    UnknownCollectionError,
    append_item,
    delete_item,
    get_collection_model,
    get_db_context,
)
from leasetrack.ordering import OrderedItem, ReorderResult, key_stats
from leasetrack.services import (
    DASHBOARD_CARDS,
    ReorderService,
    load_items,
    reindex_items,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/projects",
    tags=["Ordering"],
)

# One registry per process: each list has a single owning controller
_reorder_service = ReorderService()


def get_reorder_service() -> ReorderService:
    """Dependency returning the process-wide reorder service."""
    return _reorder_service


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class ItemResponse(BaseModel):
    """Single list item."""
    id: str
    order_key: str
    data: Dict[str, Any] = {}


class ItemListResponse(BaseModel):
    """A list in display order."""
    items: List[ItemResponse]
    total: int


class CreateItemRequest(BaseModel):
    """Fields of a new item; it is appended at the end of the list."""
    fields: Dict[str, Any] = Field(default_factory=dict)


class ReorderRequest(BaseModel):
    """Move event from the drag & drop layer (splice semantics)."""
    old_index: int = Field(..., ge=0)
    new_index: int = Field(..., ge=0)


class ReorderResponse(BaseModel):
    """Outcome of a move and the resulting order."""
    result: str
    items: List[ItemResponse]
    total: int


class KeyHealthResponse(BaseModel):
    """Key length statistics for a list."""
    count: int
    average_length: float
    max_length: int
    threshold: int
    needs_reindexing: bool


def _item_response(item: OrderedItem) -> ItemResponse:
    return ItemResponse(id=str(item.id), order_key=item.order_key, data=item.data)


def _list_response(items: List[OrderedItem]) -> ItemListResponse:
    return ItemListResponse(items=[_item_response(item) for item in items], total=len(items))


def _load_or_404(project_id: str, collection: str) -> List[OrderedItem]:
    try:
        return load_items(project_id, collection)
    except UnknownCollectionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _require_table(collection: str) -> None:
    try:
        get_collection_model(collection)
    except UnknownCollectionError as e:
        raise HTTPException(status_code=404, detail=str(e))


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/{project_id}/{collection}", response_model=ItemListResponse)
def list_items(project_id: str, collection: str):
    """Items of a project's list, sorted by order key."""
    return _list_response(_load_or_404(project_id, collection))


@router.post("/{project_id}/{collection}", response_model=ItemResponse, status_code=201)
def create_item(
    project_id: str,
    collection: str,
    request: CreateItemRequest,
    service: ReorderService = Depends(get_reorder_service),
):
    """Append an item to the end of a project's list."""
    _require_table(collection)
    try:
        with get_db_context() as db:
            item = append_item(db, collection, project_id, request.fields)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # A busy list is marked stale and reloaded after its move settles
    service.forget(project_id, collection)
    return _item_response(item)


@router.delete("/{project_id}/{collection}/{item_id}", status_code=204)
def remove_item(
    project_id: str,
    collection: str,
    item_id: str,
    service: ReorderService = Depends(get_reorder_service),
):
    """Delete an item; the remaining items keep their keys."""
    _require_table(collection)
    try:
        with get_db_context() as db:
            deleted = delete_item(db, collection, item_id)
    except PersistenceError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Item not found")

    service.forget(project_id, collection)
    return Response(status_code=204)


@router.post("/{project_id}/{collection}/reorder", response_model=ReorderResponse)
async def reorder_items(
    project_id: str,
    collection: str,
    request: ReorderRequest,
    service: ReorderService = Depends(get_reorder_service),
):
    """
    Move one item and persist the new order.

    409 when another move on the same list is still in flight,
    502 when the write failed and the move was rolled back.
    """
    try:
        outcome = await service.reorder(project_id, collection, request.old_index, request.new_index)
    except UnknownCollectionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IndexError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if outcome.result == ReorderResult.REJECTED:
        raise HTTPException(status_code=409, detail="Another reorder is in progress for this list")
    if outcome.result == ReorderResult.ROLLED_BACK:
        raise HTTPException(status_code=502, detail=outcome.error)

    return ReorderResponse(
        result=outcome.result.value,
        items=[_item_response(item) for item in outcome.items],
        total=len(outcome.items),
    )


@router.get("/{project_id}/{collection}/key-health", response_model=KeyHealthResponse)
def get_key_health(project_id: str, collection: str):
    """Key length statistics and whether the list should be reindexed."""
    items = _load_or_404(project_id, collection)
    return KeyHealthResponse(**key_stats(items).to_dict())


@router.post("/{project_id}/{collection}/reindex", response_model=ItemListResponse)
async def reindex_list(
    project_id: str,
    collection: str,
    service: ReorderService = Depends(get_reorder_service),
):
    """Rewrite every key of the list with fresh, evenly spaced keys."""
    if collection != DASHBOARD_CARDS:
        _require_table(collection)
    if not service.forget(project_id, collection):
        raise HTTPException(status_code=409, detail="Another reorder is in progress for this list")

    try:
        items = await asyncio.to_thread(reindex_items, project_id, collection)
    except PersistenceError as e:
        logger.error(f"Reindex of {collection} for project {project_id} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return _list_response(items)
