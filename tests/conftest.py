"""
Shared fixtures.

- make_game: builds valid GameIn payloads with overrides
- record: builds GameRecord objects directly, for the pure collection rules
- store / client: an in-memory store behind a TestClient
- mongo_collection: a scratch MongoDB collection, skipped when no server answers
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings
from database import InMemoryGameStore
from main import create_app
from schemas import GameIn, GameRecord

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class StepClock:
    """Returns a time one second later on every call."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def make_game():
    def _make(**overrides) -> GameIn:
        data = {
            "title": "Hollow Knight",
            "genres": ["Action", "Adventure"],
            "platforms": ["PC"],
            "publisher": "Team Cherry",
            "developer": "Team Cherry",
            "release_year": 2017,
            "critic_score": 87,
            "hours_played": 42.5,
            "completed": True,
        }
        data.update(overrides)
        return GameIn(**data)

    return _make


@pytest.fixture
def record():
    counter = iter(range(1, 1000))

    def _record(**overrides) -> GameRecord:
        data = {
            "id": f"{next(counter):024x}",
            "title": "Untitled",
            "genres": ["Action"],
            "platforms": ["PC"],
            "release_year": 2000,
            "critic_score": 50,
            "hours_played": 0,
            "completed": False,
            "favorite": False,
            "created_at": T0,
            "updated_at": T0,
        }
        data.update(overrides)
        return GameRecord(**data)

    return _record


@pytest.fixture
def store(clock) -> InMemoryGameStore:
    return InMemoryGameStore(clock=clock)


@pytest.fixture
def client(store) -> TestClient:
    return TestClient(create_app(store=store, settings=Settings()))


@pytest.fixture(scope="session")
def mongo_url() -> str:
    return os.getenv("TEST_DATABASE_URL", "mongodb://localhost:27017")


@pytest.fixture(scope="session")
def mongo_client(mongo_url: str) -> Generator[MongoClient, None, None]:
    client = MongoClient(mongo_url, tz_aware=True, serverSelectionTimeoutMS=1000)
    try:
        client.admin.command("ping")
    except PyMongoError:
        client.close()
        pytest.skip("MongoDB not available for integration tests")
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def mongo_collection(mongo_client: MongoClient):
    collection = mongo_client["game_collection_test"]["games"]
    collection.drop()
    yield collection
    collection.drop()
