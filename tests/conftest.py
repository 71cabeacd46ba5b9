"""
Pytest Configuration and Shared Fixtures

Provides an in-memory database and sample lists for all test modules.
"""

import pytest
from typing import List

from leasetrack.database import Project, configure_engine, get_db_context, init_db, insert_items
from leasetrack.ordering import OrderedItem
from leasetrack.utils.config import get_settings


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Let tests change settings through the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def database():
    """Fresh in-memory SQLite database with all tables."""
    engine = configure_engine("sqlite://")
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def project_id(database) -> str:
    """An empty project."""
    with get_db_context() as db:
        project = Project(title="HQ Relocation", company_name="Acme Corp")
        db.add(project)
        db.flush()
        return str(project.id)


@pytest.fixture
def properties(project_id) -> List[OrderedItem]:
    """Three properties of interest stored with keys a0, a1, a2."""
    rows = [
        {"name": "100 Main St", "size": "5,000 sf", "rent": "$32/sf"},
        {"name": "250 Oak Ave", "size": "7,500 sf", "rent": "$28/sf"},
        {"name": "9 Harbor Way", "size": "4,200 sf", "rent": "$41/sf", "status": "active"},
    ]
    with get_db_context() as db:
        return insert_items(db, "properties", project_id, rows)


# ============================================================================
# In-Memory Fixtures
# ============================================================================

@pytest.fixture
def abc_items() -> List[OrderedItem]:
    """Three items A, B, C in display order."""
    return [
        OrderedItem(id="A", order_key="a0"),
        OrderedItem(id="B", order_key="a1"),
        OrderedItem(id="C", order_key="a2"),
    ]
