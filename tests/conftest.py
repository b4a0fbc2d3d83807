"""
Shared pytest fixtures and configuration for mongoline tests.

This module provides:
- An in-memory fake MongoDB server (see ``tests/_support/fake_mongo.py``)
- A sample collection definition and a Collection wired to the fake server
- Settings cache isolation

Usage:
    async def test_insert(users, server):
        result = await users.insert({"name": "a"})
        assert server.all_closed
"""

import sys
from pathlib import Path
from typing import Any, Generator

import pytest

# Ensure mongoline package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mongoline.adapter.collection import Collection
from mongoline.core.settings import clear_settings_cache

from tests._support.fake_mongo import FakeServer


TEST_URL = "mongodb://localhost:27017/testdb"


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Settings are cached per process; tests that patch env need a fresh load."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Fake driver
# =============================================================================


@pytest.fixture
def server() -> FakeServer:
    """A fresh in-memory server. Its ``client_factory`` replaces AsyncMongoClient."""
    return FakeServer()


@pytest.fixture
def user_definition() -> dict[str, Any]:
    """A model definition exercising every schema flag."""
    return {
        "identity": "User",
        "config": TEST_URL,
        "definition": {
            "name": {"type": "string"},
            "email": {"type": "string", "unique": True},
            "age": {"type": "integer", "index": True},
            "team": {"type": "string"},
            "score": {"type": "integer"},
            "counter": {"type": "integer", "autoIncrement": True},
        },
    }


@pytest.fixture
def users(user_definition: dict[str, Any], server: FakeServer) -> Collection:
    """The ``user`` collection backed by the fake server."""
    return Collection(user_definition, client_factory=server.client_factory)


@pytest.fixture
def seeded(server: FakeServer) -> list[dict[str, Any]]:
    """Four stored users in two teams."""
    from bson import ObjectId

    docs = [
        {"_id": ObjectId(), "name": "ann", "email": "ann@x.io", "age": 31, "team": "red", "score": 10},
        {"_id": ObjectId(), "name": "bob", "email": "bob@x.io", "age": 25, "team": "red", "score": 4},
        {"_id": ObjectId(), "name": "cid", "email": "cid@x.io", "age": 42, "team": "blue", "score": 7},
        {"_id": ObjectId(), "name": "dee", "email": "dee@x.io", "age": 19, "team": "blue", "score": 1},
    ]
    server.storage[("testdb", "user")] = [dict(doc) for doc in docs]
    return docs
