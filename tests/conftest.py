"""Pytest configuration and fixtures."""

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Store, get_store
from main import app


@pytest.fixture
def store():
    """A Store over a fresh in-memory database."""
    return Store(mongomock.MongoClient()["plantopia_test"])


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user(store):
    store.users.insert_one({
        "uid": "u1",
        "email": "fern@example.com",
        "displayName": "Fern",
        "cart": [],
        "wishlist": [],
        "orders": [],
        "role": "user",
    })
    return store.users.find_one({"uid": "u1"})


@pytest.fixture
def plant_id(store):
    result = store.products("plants").insert_one({"name": "Monstera", "price": 20, "comments": []})
    return str(result.inserted_id)


@pytest.fixture
def author():
    return {"uid": "u1", "displayName": "Fern", "photoURL": "https://img.example.com/fern.png"}


@pytest.fixture
def other_author():
    return {"uid": "u2", "displayName": "Ivy", "photoURL": None}
