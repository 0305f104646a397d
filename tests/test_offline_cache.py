"""Tests for local storage, offline snapshots and the pending-action queue."""

import time

import pytest

from services.local_storage import LocalStorage
from services.offline_cache import CACHE_PREFIX, OfflineCache


class TestLocalStorage:
    """Tests for the SQLite key/value store."""

    def test_set_and_get_json_values(self, storage):
        storage.set_item("settings", {"name": "Garage", "tags": ["a", "b"]})
        assert storage.get_item("settings") == {"name": "Garage", "tags": ["a", "b"]}

    def test_missing_key_returns_default(self, storage):
        assert storage.get_item("nope") is None
        assert storage.get_item("nope", []) == []

    def test_overwrite_and_remove(self, storage):
        storage.set_item("k", 1)
        storage.set_item("k", 2)
        assert storage.get_item("k") == 2
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_prefix_is_literal(self, storage):
        storage.set_item("a_b:1", 1)
        storage.set_item("axb:2", 2)
        assert storage.keys("a_b:") == ["a_b:1"]
        assert storage.clear("a_b:") == 1
        assert storage.keys() == ["axb:2"]

    def test_values_survive_reopen(self, tmp_path):
        path = str(tmp_path / "device.db")
        LocalStorage(path).set_item("queue", [{"id": "1"}])
        assert LocalStorage(path).get_item("queue") == [{"id": "1"}]

    def test_in_memory_database_keeps_data(self):
        storage = LocalStorage(":memory:")
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"

    def test_unicode_values(self, storage):
        storage.set_item("name", "تعمیرگاه")
        assert storage.get_item("name") == "تعمیرگاه"


class TestSnapshots:
    """Tests for timestamped table snapshots."""

    def test_cache_and_read(self, offline_cache):
        offline_cache.cache("tasks", [{"id": "1"}])
        assert offline_cache.read("tasks") == [{"id": "1"}]
        assert offline_cache.read("users") is None

    def test_snapshot_is_timestamped(self, offline_cache):
        before = time.time()
        offline_cache.cache("tasks", [])
        assert offline_cache.cached_at("tasks") >= before

    def test_expiry(self, offline_cache, storage):
        assert offline_cache.is_expired("tasks") is True
        offline_cache.cache("tasks", [])
        assert offline_cache.is_expired("tasks", max_age=300) is False

        storage.set_item(CACHE_PREFIX + "tasks", {"data": [], "timestamp": time.time() - 301})
        assert offline_cache.is_expired("tasks", max_age=300) is True
        # Expired snapshots are still readable
        assert offline_cache.read("tasks") == []

    def test_clear_keeps_queue(self, offline_cache):
        offline_cache.cache("tasks", [])
        offline_cache.enqueue("delete", "tasks", {"id": "1"})
        offline_cache.clear()
        assert offline_cache.read("tasks") is None
        assert len(offline_cache.pending_actions()) == 1


class TestQueue:
    """Tests for queueing and draining offline writes."""

    def test_enqueue_preserves_order(self, offline_cache):
        offline_cache.enqueue("create", "tasks", {"id": "1"})
        offline_cache.enqueue("update", "tasks", {"id": "1", "record": {}})
        offline_cache.enqueue("delete", "tasks", {"id": "1"})
        assert [a.type for a in offline_cache.pending_actions()] == ["create", "update", "delete"]

    def test_unknown_action_type(self, offline_cache):
        with pytest.raises(ValueError):
            offline_cache.enqueue("upsert", "tasks", {})

    def test_drain_removes_replayed_actions(self, offline_cache):
        offline_cache.enqueue("create", "tasks", {"id": "1"})
        offline_cache.enqueue("create", "tasks", {"id": "2"})
        seen = []

        result = offline_cache.drain(lambda action: seen.append(action.payload["id"]))

        assert seen == ["1", "2"]
        assert result.success
        assert result.remaining == 0
        assert offline_cache.pending_actions() == []

    def test_failed_actions_stay_queued(self, offline_cache):
        offline_cache.enqueue("create", "tasks", {"id": "1"})
        offline_cache.enqueue("create", "tasks", {"id": "2"})

        def replay(action):
            if action.payload["id"] == "1":
                raise RuntimeError("still offline")

        result = offline_cache.drain(replay)

        assert not result.success
        assert [a.payload["id"] for a in result.replayed] == ["2"]
        pending = offline_cache.pending_actions()
        assert len(pending) == 1
        assert pending[0].attempts == 1
        assert pending[0].last_error == "still offline"

    def test_queue_survives_restart(self, storage, tmp_path):
        OfflineCache(storage).enqueue("delete", "users", {"id": "u1"})
        reopened = OfflineCache(LocalStorage(str(storage.db_path)))
        assert reopened.pending_actions()[0].payload == {"id": "u1"}
