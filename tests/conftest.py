from __future__ import annotations

import mongomock
import pytest
from fastapi.testclient import TestClient

from bookstore.catalog.store import BookStore, ensure_collection
from bookstore.main import create_app

DUNE = {
    "name": "Dune",
    "author": "Herbert",
    "isbn": "0-441-17271-7",
    "pages": 412,
    "year": 1965,
}


@pytest.fixture
def dune() -> dict:
    return dict(DUNE)


@pytest.fixture
def mongo_client():
    client = mongomock.MongoClient()
    yield client
    client.close()


@pytest.fixture
def database(mongo_client):
    return mongo_client["exercise-1"]


@pytest.fixture
def collection(database):
    return ensure_collection(database, "information")


@pytest.fixture
def store(collection) -> BookStore:
    return BookStore(collection)


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store)) as test_client:
        yield test_client
