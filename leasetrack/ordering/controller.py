"""
Reorder Controller

Owns the in-memory order of one rendered list and turns move events
(old_index, new_index) into persisted reorders:

    IDLE -> REORDERING -> COMMITTED | ROLLED_BACK -> IDLE

The move is applied optimistically before the write. A successful write
keeps it (and lets the caller refetch); a failed or timed out write
restores the previous order and exposes a user-visible error.

Only one move per controller is in flight at a time. A second move that
arrives before the first has persisted and its callbacks have returned
is dropped, not queued.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from leasetrack.utils.config import get_settings

from .maintenance import plan_move
from .models import MovePlan, array_move

logger = logging.getLogger(__name__)

T = TypeVar("T")

Planner = Callable[[List[T], int, int], MovePlan[T]]
Persist = Callable[[MovePlan[T]], Awaitable[None]]


class ReorderPhase(str, Enum):
    """State of a reorder controller."""
    IDLE = "idle"
    REORDERING = "reordering"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class ReorderResult(str, Enum):
    """Outcome of a single handle_reorder call."""
    COMMITTED = "committed"      # Persisted, optimistic order kept
    ROLLED_BACK = "rolled_back"  # Persist failed, previous order restored
    REJECTED = "rejected"        # Another move was in flight
    NOOP = "noop"                # Dropped onto its own slot


class ConcurrentReorderRejected(Exception):
    """A move was requested while another is still persisting."""


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ReorderController(Generic[T]):
    """
    Optimistic reorder state for one list.

    Usage:
        controller = ReorderController(items, persist=order_key_persister("properties"))
        result = await controller.handle_reorder(0, 2)
        if controller.reorder_error:
            show_banner(controller.reorder_error)
    """

    def __init__(
        self,
        items: Sequence[T],
        persist: Persist,
        planner: Planner = plan_move,
        on_success: Optional[Callable[[List[T]], Any]] = None,
        on_error: Optional[Callable[[Exception], Any]] = None,
        timeout: Optional[float] = None,
        error_message: Optional[str] = None,
        name: str = "list",
    ):
        """
        Args:
            items: Current items in display order
            persist: Coroutine function writing a MovePlan to the store
            planner: Pure function computing the MovePlan for a move
            on_success: Called with the committed items; may return a
                        refetched list (or an awaitable of one) to adopt
            on_error: Called with the exception after a rollback; may
                      return a refetched list (or an awaitable of one) to adopt
            timeout: Seconds before a pending write counts as failed
                     (defaults to settings, <= 0 disables)
            error_message: User-visible message set on rollback
            name: Label used in log messages
        """
        settings = get_settings()
        self._items: List[T] = list(items)
        self._persist = persist
        self._planner = planner
        self._on_success = on_success
        self._on_error = on_error
        self.timeout = settings.REORDER_TIMEOUT_SECONDS if timeout is None else timeout
        self.error_message = error_message or settings.REORDER_ERROR_MESSAGE
        self.name = name

        self._phase = ReorderPhase.IDLE
        self._error: Optional[str] = None
        self.last_exception: Optional[BaseException] = None
        self.last_result: Optional[ReorderResult] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def items(self) -> List[T]:
        return list(self._items)

    @property
    def phase(self) -> ReorderPhase:
        return self._phase

    @property
    def is_reordering(self) -> bool:
        # Held until the callbacks of the current move have returned
        return self._phase != ReorderPhase.IDLE

    @property
    def reorder_error(self) -> Optional[str]:
        return self._error

    def clear_error(self) -> None:
        self._error = None

    def set_items(self, items: Sequence[T]) -> None:
        """Replace the list after an external refetch."""
        self._ensure_idle()
        self._items = list(items)

    def _ensure_idle(self) -> None:
        if self.is_reordering:
            raise ConcurrentReorderRejected(f"Reorder already in progress for {self.name}")

    def _transition(self, phase: ReorderPhase) -> None:
        logger.debug(f"[{self.name}] {self._phase.value} -> {phase.value}")
        self._phase = phase

    # -------------------------------------------------------------------------
    # Reordering
    # -------------------------------------------------------------------------

    async def handle_reorder(self, old_index: int, new_index: int) -> ReorderResult:
        """
        Move the item at old_index to new_index and persist the change.

        Raises:
            IndexError: If an index is outside the list (state unchanged)
        """
        try:
            self._ensure_idle()
        except ConcurrentReorderRejected as e:
            logger.info(f"Ignoring move {old_index}->{new_index}: {e}")
            return ReorderResult.REJECTED

        if old_index == new_index:
            array_move(self._items, old_index, new_index)  # bounds check
            self.last_result = ReorderResult.NOOP
            return ReorderResult.NOOP

        plan = self._planner(self._items, old_index, new_index)

        self._transition(ReorderPhase.REORDERING)
        self._error = None
        self.last_exception = None
        snapshot = self._items
        self._items = list(plan.ordered)

        try:
            await self._run_persist(plan)
        except asyncio.CancelledError:
            self._items = snapshot
            self._transition(ReorderPhase.IDLE)
            raise
        except Exception as e:
            return await self._rollback(snapshot, e)

        return await self._commit()

    async def _run_persist(self, plan: MovePlan) -> None:
        if self.timeout and self.timeout > 0:
            await asyncio.wait_for(self._persist(plan), timeout=self.timeout)
        else:
            await self._persist(plan)

    async def _commit(self) -> ReorderResult:
        self._transition(ReorderPhase.COMMITTED)
        try:
            if self._on_success is not None:
                refreshed = await _maybe_await(self._on_success(list(self._items)))
                if refreshed is not None:
                    self._items = list(refreshed)
        except Exception as e:
            # The write already succeeded; keep the committed order
            logger.error(f"[{self.name}] Refresh after reorder failed: {e}")
        finally:
            self._transition(ReorderPhase.IDLE)

        self.last_result = ReorderResult.COMMITTED
        return ReorderResult.COMMITTED

    async def _rollback(self, snapshot: List[T], error: Exception) -> ReorderResult:
        if isinstance(error, asyncio.TimeoutError):
            logger.error(f"[{self.name}] Reorder timed out after {self.timeout}s, rolling back")
        else:
            logger.error(f"[{self.name}] Reorder failed, rolling back: {error}")

        self._items = snapshot
        self._error = self.error_message
        self.last_exception = error
        self._transition(ReorderPhase.ROLLED_BACK)
        try:
            if self._on_error is not None:
                refreshed = await _maybe_await(self._on_error(error))
                if refreshed is not None:
                    self._items = list(refreshed)
        except Exception as e:
            logger.error(f"[{self.name}] Error callback after rollback failed: {e}")
        finally:
            self._transition(ReorderPhase.IDLE)

        self.last_result = ReorderResult.ROLLED_BACK
        return ReorderResult.ROLLED_BACK
