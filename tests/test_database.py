import threading

import pytest
from bson import ObjectId

from config import Settings
from database import InMemoryGameStore, MongoGameStore, create_store
from tests.conftest import StepClock, T0


# ---------- In-memory store ----------
def test_insert_assigns_object_id_and_timestamps(store, make_game):
    game_id = store.insert(make_game())
    assert ObjectId.is_valid(game_id)
    game = store.get(game_id)
    assert game.id == game_id
    assert game.favorite is False
    assert game.created_at == game.updated_at == T0


def test_insert_keeps_requested_favorite(store, make_game):
    game_id = store.insert(make_game(favorite=True))
    assert store.get(game_id).favorite is True


def test_list_preserves_insertion_order(store, make_game):
    ids = [store.insert(make_game(title=t)) for t in ("Doom", "Quake", "Hexen")]
    assert [g.id for g in store.list()] == ids


def test_get_missing_returns_none(store):
    assert store.get(str(ObjectId())) is None


def test_update_refreshes_updated_at_only(store, make_game):
    game_id = store.insert(make_game())
    assert store.update(game_id, {"critic_score": 95, "created_at": None, "id": "nope"})
    game = store.get(game_id)
    assert game.id == game_id
    assert game.critic_score == 95
    assert game.created_at == T0
    assert game.updated_at > T0


def test_update_and_delete_missing(store):
    missing = str(ObjectId())
    assert store.update(missing, {"title": "x"}) is False
    assert store.delete(missing) is False
    assert store.toggle_favorite(missing) is None


def test_delete(store, make_game):
    game_id = store.insert(make_game())
    assert store.delete(game_id) is True
    assert store.get(game_id) is None
    assert store.list() == []


def test_toggle_favorite_flips_and_touches(store, make_game):
    game_id = store.insert(make_game())
    assert store.toggle_favorite(game_id) is True
    game = store.get(game_id)
    assert game.favorite is True
    assert game.updated_at > game.created_at
    assert store.toggle_favorite(game_id) is False


def test_concurrent_toggles_cancel_out(store, make_game):
    game_id = store.insert(make_game())
    workers = 8
    rounds = 50
    barrier = threading.Barrier(workers)

    def flip():
        barrier.wait()
        for _ in range(rounds):
            store.toggle_favorite(game_id)

    threads = [threading.Thread(target=flip) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.get(game_id).favorite is False


def test_in_memory_ping():
    assert InMemoryGameStore().ping() is True


def test_create_store_without_url_is_in_memory():
    assert isinstance(create_store(Settings(database_url=None)), InMemoryGameStore)


# ---------- MongoDB store ----------
@pytest.fixture
def mongo_store(mongo_collection):
    store = MongoGameStore(mongo_collection, clock=StepClock())
    store.ensure_indexes()
    return store


def test_mongo_round_trip(mongo_store, make_game):
    game_id = mongo_store.insert(make_game(genres=["RPG"]))
    game = mongo_store.get(game_id)
    assert game.id == game_id
    assert game.genres == ["RPG"]
    assert game.created_at == T0


def test_mongo_invalid_id_is_not_found(mongo_store):
    assert mongo_store.get("not-an-id") is None
    assert mongo_store.update("not-an-id", {"title": "x"}) is False
    assert mongo_store.delete("not-an-id") is False
    assert mongo_store.toggle_favorite("not-an-id") is None


def test_mongo_update_and_toggle(mongo_store, make_game):
    game_id = mongo_store.insert(make_game())
    assert mongo_store.update(game_id, {"hours_played": 100.0})
    assert mongo_store.toggle_favorite(game_id) is True
    assert mongo_store.toggle_favorite(game_id) is False
    game = mongo_store.get(game_id)
    assert game.hours_played == 100.0
    assert game.favorite is False
    assert game.created_at == T0
    assert game.updated_at > T0


def test_mongo_list_and_delete(mongo_store, make_game):
    ids = [mongo_store.insert(make_game(title=t)) for t in ("Braid", "Fez")]
    assert [g.id for g in mongo_store.list()] == ids
    assert mongo_store.delete(ids[0])
    assert [g.id for g in mongo_store.list()] == ids[1:]


def test_mongo_indexes(mongo_store, mongo_collection):
    keys = {tuple(info["key"])[0][0] for info in mongo_collection.index_information().values()}
    assert {"title", "genres", "platforms", "favorite"} <= keys
