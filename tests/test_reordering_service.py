"""
Tests for the reordering service.

These tests verify:
- Moves are persisted and the list is refetched from the store
- Failed writes roll the list back with a user-visible error
- Dashboard cards go through the same flow
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from leasetrack.database import (
    PersistenceError,
    UnknownCollectionError,
    append_item,
    get_db_context,
    get_dashboard_cards,
)
from leasetrack.ordering import ReorderResult
from leasetrack.services import DASHBOARD_CARDS, ReorderService, load_items, reindex_items
from leasetrack.services import reordering


def _names(items):
    return [item.data["name"] for item in items]


class TestReorderService:
    """Test end-to-end moves against the database."""

    @pytest.mark.asyncio
    async def test_reorder_persists(self, properties, project_id):
        service = ReorderService()

        outcome = await service.reorder(project_id, "properties", 0, 2)

        assert outcome.succeeded
        assert outcome.result == ReorderResult.COMMITTED
        assert _names(outcome.items) == ["250 Oak Ave", "9 Harbor Way", "100 Main St"]
        assert _names(load_items(project_id, "properties")) == ["250 Oak Ave", "9 Harbor Way", "100 Main St"]

    @pytest.mark.asyncio
    async def test_consecutive_moves(self, properties, project_id):
        service = ReorderService()

        await service.reorder(project_id, "properties", 0, 2)
        outcome = await service.reorder(project_id, "properties", 2, 0)

        assert _names(outcome.items) == ["100 Main St", "250 Oak Ave", "9 Harbor Way"]
        assert _names(load_items(project_id, "properties")) == _names(outcome.items)

    @pytest.mark.asyncio
    async def test_same_slot_is_noop(self, properties, project_id):
        outcome = await ReorderService().reorder(project_id, "properties", 1, 1)
        assert outcome.result == ReorderResult.NOOP
        assert outcome.succeeded

    @pytest.mark.asyncio
    async def test_failed_write_rolls_back(self, properties, project_id, monkeypatch):
        failing = AsyncMock(side_effect=PersistenceError("database unavailable"))
        monkeypatch.setattr(reordering, "order_key_persister", lambda collection: failing)
        service = ReorderService()

        outcome = await service.reorder(project_id, "properties", 0, 2)

        assert outcome.result == ReorderResult.ROLLED_BACK
        assert not outcome.succeeded
        assert outcome.error == "Error reordering items. Please try again."
        assert _names(outcome.items) == ["100 Main St", "250 Oak Ave", "9 Harbor Way"]

    @pytest.mark.asyncio
    async def test_unknown_collection(self, project_id):
        with pytest.raises(UnknownCollectionError):
            await ReorderService().reorder(project_id, "tenants", 0, 1)

    @pytest.mark.asyncio
    async def test_out_of_range(self, properties, project_id):
        with pytest.raises(IndexError):
            await ReorderService().reorder(project_id, "properties", 0, 7)

    @pytest.mark.asyncio
    async def test_lists_have_separate_controllers(self, properties, project_id):
        service = ReorderService()
        roadmap = await service.get_controller(project_id, "project_roadmap")
        props = await service.get_controller(project_id, "properties")

        assert roadmap is not props
        assert await service.get_controller(project_id, "properties") is props

    @pytest.mark.asyncio
    async def test_forget_reloads_list(self, properties, project_id):
        service = ReorderService()
        first = await service.get_controller(project_id, "properties")

        assert service.forget(project_id, "properties")
        second = await service.get_controller(project_id, "properties")

        assert first is not second


class TestListChangedDuringMove:
    """Test that rows added while a move is in flight are not lost."""

    @staticmethod
    def _gate_first_write(monkeypatch):
        """First write waits for the gate and then fails; later writes are real."""
        real = reordering.order_key_persister("properties")
        started = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def persist(plan):
            calls.append(plan)
            if len(calls) == 1:
                started.set()
                await release.wait()
                raise PersistenceError("connection reset")
            await real(plan)

        monkeypatch.setattr(reordering, "order_key_persister", lambda collection: persist)
        return started, release

    @pytest.mark.asyncio
    async def test_append_during_failed_move_is_kept(self, properties, project_id, monkeypatch):
        started, release = self._gate_first_write(monkeypatch)
        service = ReorderService(timeout=0)
        controller = await service.get_controller(project_id, "properties")

        move = asyncio.create_task(controller.handle_reorder(0, 2))
        await started.wait()
        with get_db_context() as db:
            append_item(db, "properties", project_id, {"name": "77 Pier Rd"})
        assert service.forget(project_id, "properties") is False

        release.set()
        assert await move == ReorderResult.ROLLED_BACK
        assert _names(controller.items) == ["100 Main St", "250 Oak Ave", "9 Harbor Way", "77 Pier Rd"]

        outcome = await service.reorder(project_id, "properties", 3, 0)

        assert outcome.result == ReorderResult.COMMITTED
        assert _names(outcome.items) == ["77 Pier Rd", "100 Main St", "250 Oak Ave", "9 Harbor Way"]
        assert _names(load_items(project_id, "properties")) == _names(outcome.items)

    @pytest.mark.asyncio
    async def test_busy_controller_reloaded_once_idle(self, properties, project_id, monkeypatch):
        started, release = self._gate_first_write(monkeypatch)
        service = ReorderService(timeout=0)
        controller = await service.get_controller(project_id, "properties")

        move = asyncio.create_task(controller.handle_reorder(0, 2))
        await started.wait()
        assert service.forget(project_id, "properties") is False
        # Still busy: the same controller is handed out
        assert await service.get_controller(project_id, "properties") is controller

        release.set()
        await move

        reloaded = await service.get_controller(project_id, "properties")
        assert reloaded is not controller
        assert await service.get_controller(project_id, "properties") is reloaded


class TestDashboardCardReorder:
    """Test the dashboard card layout flow."""

    @pytest.mark.asyncio
    async def test_move_card(self, project_id):
        outcome = await ReorderService().reorder(project_id, DASHBOARD_CARDS, 4, 0)

        assert outcome.result == ReorderResult.COMMITTED
        assert [item.id for item in outcome.items][0] == "documents"
        with get_db_context() as db:
            cards = get_dashboard_cards(db, project_id)
        assert [card["id"] for card in cards] == ["documents", "updates", "availability", "properties", "roadmap"]

    def test_reindex_cards(self, project_id):
        items = reindex_items(project_id, DASHBOARD_CARDS)
        assert [item.order_key for item in items] == ["a0", "a1", "a2", "a3", "a4"]
