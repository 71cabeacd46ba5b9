"""
Tests for the HTTP API.

Runs the FastAPI app against an in-memory database with a fresh
reorder service per test.
"""

import pytest
from unittest.mock import AsyncMock
from uuid import uuid4

from fastapi.testclient import TestClient

from api.app import app
from api.projects import get_reorder_service
from leasetrack.database import PersistenceError
from leasetrack.services import ReorderService
from leasetrack.services import reordering


@pytest.fixture
def client(database):
    service = ReorderService()
    app.dependency_overrides[get_reorder_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _names(response):
    return [item["data"]["name"] for item in response.json()["items"]]


class TestHealth:
    """Test health endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"


class TestListEndpoints:
    """Test reading and editing lists."""

    def test_list_items(self, client, properties, project_id):
        response = client.get(f"/api/projects/{project_id}/properties")

        assert response.status_code == 200
        assert response.json()["total"] == 3
        assert _names(response) == ["100 Main St", "250 Oak Ave", "9 Harbor Way"]

    def test_unknown_collection(self, client, project_id):
        response = client.get(f"/api/projects/{project_id}/tenants")
        assert response.status_code == 404

    def test_create_item(self, client, properties, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties",
            json={"fields": {"name": "77 Pier Rd", "size": "3,000 sf"}},
        )

        assert response.status_code == 201
        assert response.json()["order_key"] == "a3"
        assert _names(client.get(f"/api/projects/{project_id}/properties"))[-1] == "77 Pier Rd"

    def test_create_item_bad_field(self, client, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties",
            json={"fields": {"name": "x", "landlord": "y"}},
        )
        assert response.status_code == 422

    def test_delete_item(self, client, properties, project_id):
        url = f"/api/projects/{project_id}/properties/{properties[0].id}"

        assert client.delete(url).status_code == 204
        assert client.delete(url).status_code == 404
        assert _names(client.get(f"/api/projects/{project_id}/properties")) == ["250 Oak Ave", "9 Harbor Way"]

    def test_dashboard_cards(self, client, project_id):
        response = client.get(f"/api/projects/{project_id}/dashboard_cards")

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]][0] == "updates"

    def test_dashboard_cards_unknown_project(self, client, database):
        response = client.get(f"/api/projects/{uuid4()}/dashboard_cards")
        assert response.status_code == 404


class TestReorderEndpoint:
    """Test drag & drop moves over HTTP."""

    def test_reorder(self, client, properties, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties/reorder",
            json={"old_index": 0, "new_index": 2},
        )

        assert response.status_code == 200
        assert response.json()["result"] == "committed"
        assert _names(response) == ["250 Oak Ave", "9 Harbor Way", "100 Main St"]
        assert _names(client.get(f"/api/projects/{project_id}/properties")) == _names(response)

    def test_same_slot(self, client, properties, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties/reorder",
            json={"old_index": 1, "new_index": 1},
        )
        assert response.status_code == 200
        assert response.json()["result"] == "noop"

    def test_out_of_range(self, client, properties, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties/reorder",
            json={"old_index": 0, "new_index": 9},
        )
        assert response.status_code == 422

    def test_negative_index(self, client, properties, project_id):
        response = client.post(
            f"/api/projects/{project_id}/properties/reorder",
            json={"old_index": -1, "new_index": 0},
        )
        assert response.status_code == 422

    def test_failed_write(self, client, properties, project_id, monkeypatch):
        failing = AsyncMock(side_effect=PersistenceError("database unavailable"))
        monkeypatch.setattr(reordering, "order_key_persister", lambda collection: failing)

        response = client.post(
            f"/api/projects/{project_id}/properties/reorder",
            json={"old_index": 0, "new_index": 2},
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "Error reordering items. Please try again."
        assert _names(client.get(f"/api/projects/{project_id}/properties")) == [
            "100 Main St", "250 Oak Ave", "9 Harbor Way",
        ]


class TestMaintenanceEndpoints:
    """Test key health and reindexing."""

    def test_key_health(self, client, properties, project_id):
        response = client.get(f"/api/projects/{project_id}/properties/key-health")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert data["max_length"] == 2
        assert data["needs_reindexing"] is False

    def test_reindex(self, client, properties, project_id):
        client.post(f"/api/projects/{project_id}/properties/reorder", json={"old_index": 0, "new_index": 1})

        response = client.post(f"/api/projects/{project_id}/properties/reindex")

        assert response.status_code == 200
        assert [item["order_key"] for item in response.json()["items"]] == ["a0", "a1", "a2"]
        assert _names(response) == ["250 Oak Ave", "100 Main St", "9 Harbor Way"]
