"""
Game storage.

Two stores share one interface so the API does not care where games live:

- InMemoryGameStore -> a dict guarded by a lock, gone when the process exits
- MongoGameStore -> the "games" collection of a MongoDB database

Ids are ObjectId hex strings in both, so the API validates them the same way.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from config import Settings
from schemas import GameIn, GameRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# fields a caller may never overwrite through update()
PROTECTED_FIELDS = {"id", "_id", "created_at", "updated_at"}
INDEXED_FIELDS = ("title", "genres", "platforms", "favorite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_document(game: GameIn, now: datetime) -> dict:
    doc = game.model_dump()
    doc["favorite"] = bool(doc.get("favorite"))
    doc["created_at"] = now
    doc["updated_at"] = now
    return doc


def _clean_fields(fields: dict) -> dict:
    return {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}


class InMemoryGameStore:
    """Keeps games in insertion order for the lifetime of the process."""

    def __init__(self, clock: Clock = utcnow):
        self._games: Dict[str, GameRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def insert(self, game: GameIn) -> str:
        game_id = str(ObjectId())
        record = GameRecord(id=game_id, **_new_document(game, self._clock()))
        with self._lock:
            self._games[game_id] = record
        return game_id

    def get(self, game_id: str) -> Optional[GameRecord]:
        with self._lock:
            return self._games.get(game_id)

    def list(self) -> List[GameRecord]:
        with self._lock:
            return list(self._games.values())

    def update(self, game_id: str, fields: dict) -> bool:
        changes = _clean_fields(fields)
        with self._lock:
            current = self._games.get(game_id)
            if current is None:
                return False
            changes["updated_at"] = self._clock()
            self._games[game_id] = current.model_copy(update=changes)
        return True

    def delete(self, game_id: str) -> bool:
        with self._lock:
            return self._games.pop(game_id, None) is not None

    def toggle_favorite(self, game_id: str) -> Optional[bool]:
        with self._lock:
            current = self._games.get(game_id)
            if current is None:
                return None
            flipped = not current.favorite
            self._games[game_id] = current.model_copy(
                update={"favorite": flipped, "updated_at": self._clock()}
            )
        return flipped

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class MongoGameStore:
    """Games persisted in a MongoDB collection."""

    def __init__(self, collection, client: Optional[MongoClient] = None, clock: Clock = utcnow):
        self._col = collection
        self._client = client
        self._clock = clock

    @classmethod
    def connect(cls, url: str, database_name: str, collection_name: str, **kwargs) -> "MongoGameStore":
        client = MongoClient(url, tz_aware=True, serverSelectionTimeoutMS=5000)
        store = cls(client[database_name][collection_name], client=client, **kwargs)
        try:
            store.ensure_indexes()
        except PyMongoError:
            logger.exception("Could not reach MongoDB at startup")
            client.close()
            raise
        logger.info("Connected to MongoDB database %s", database_name)
        return store

    def ensure_indexes(self) -> None:
        for name in INDEXED_FIELDS:
            self._col.create_index([(name, ASCENDING)])

    @staticmethod
    def _to_record(doc: dict) -> GameRecord:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return GameRecord.model_validate(doc)

    def insert(self, game: GameIn) -> str:
        result = self._col.insert_one(_new_document(game, self._clock()))
        return str(result.inserted_id)

    def get(self, game_id: str) -> Optional[GameRecord]:
        if not ObjectId.is_valid(game_id):
            return None
        doc = self._col.find_one({"_id": ObjectId(game_id)})
        return self._to_record(doc) if doc else None

    def list(self) -> List[GameRecord]:
        return [self._to_record(d) for d in self._col.find().sort("_id", ASCENDING)]

    def update(self, game_id: str, fields: dict) -> bool:
        if not ObjectId.is_valid(game_id):
            return False
        changes = _clean_fields(fields)
        changes["updated_at"] = self._clock()
        res = self._col.update_one({"_id": ObjectId(game_id)}, {"$set": changes})
        return res.matched_count > 0

    def delete(self, game_id: str) -> bool:
        if not ObjectId.is_valid(game_id):
            return False
        res = self._col.delete_one({"_id": ObjectId(game_id)})
        return res.deleted_count > 0

    def toggle_favorite(self, game_id: str) -> Optional[bool]:
        if not ObjectId.is_valid(game_id):
            return None
        # pipeline update flips the stored value in one round trip
        doc = self._col.find_one_and_update(
            {"_id": ObjectId(game_id)},
            [{"$set": {"favorite": {"$not": ["$favorite"]}, "updated_at": self._clock()}}],
            return_document=ReturnDocument.AFTER,
        )
        return bool(doc["favorite"]) if doc else None

    def ping(self) -> bool:
        if self._client is None:
            return True
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("MongoDB ping failed: %s", e)
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def create_store(settings: Settings):
    if settings.database_url:
        return MongoGameStore.connect(
            settings.database_url, settings.database_name, settings.collection_name
        )
    logger.info("DATABASE_URL not set, keeping games in memory")
    return InMemoryGameStore()
