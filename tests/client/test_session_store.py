"""Tests for SessionStore over the in-memory and Redis key/value stores."""
from unittest.mock import MagicMock

import pytest

from babypeek.client.session_store import (
    CURRENT_JOB_KEY,
    SESSION_PREFIX,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    SessionStore,
)


@pytest.fixture
def store():
    return SessionStore(MemoryKeyValueStore())


class TestSessionStore:
    def test_create_sets_current(self, store):
        record = store.create("job-1", "tok-1")
        assert record.last_known_status == "pending"
        assert store.current().job_id == "job-1"
        assert store.kv.get(CURRENT_JOB_KEY) == "job-1"
        assert store.kv.get(f"{SESSION_PREFIX}job-1") is not None

    def test_newer_upload_becomes_current(self, store):
        store.create("job-1", "tok-1")
        store.create("job-2", "tok-2")
        assert store.current().job_id == "job-2"
        assert store.get("job-1").session_credential == "tok-1"
        assert {r.job_id for r in store.records()} == {"job-1", "job-2"}

    def test_update_status(self, store):
        store.create("job-1", "tok-1")
        record = store.update_status("job-1", "completed", "res-9")
        assert record.last_known_status == "completed"
        assert store.get("job-1").last_known_result_id == "res-9"
        assert store.update_status("missing", "completed") is None

    def test_clear_current(self, store):
        store.create("job-1", "tok-1")
        store.clear("job-1")
        assert store.get("job-1") is None
        assert store.current() is None

    def test_clear_other_keeps_current(self, store):
        store.create("job-1", "tok-1")
        store.create("job-2", "tok-2")
        store.clear("job-1")
        assert store.current().job_id == "job-2"

    def test_corrupt_record_is_dropped(self, store):
        store.kv.set(f"{SESSION_PREFIX}job-1", "{not json")
        store.kv.set(CURRENT_JOB_KEY, "job-1")
        assert store.current() is None
        assert store.kv.get(f"{SESSION_PREFIX}job-1") is None
        assert store.kv.get(CURRENT_JOB_KEY) is None

    def test_dangling_current_pointer(self, store):
        store.kv.set(CURRENT_JOB_KEY, "ghost")
        assert store.current() is None
        assert store.kv.get(CURRENT_JOB_KEY) is None


class TestRedisKeyValueStore:
    def test_values_are_signed(self):
        client = MagicMock()
        kv = RedisKeyValueStore("client-secret-0123456789", client=client)
        kv.set("k", "v")
        key, raw = client.set.call_args[0]
        assert key == "client:k"
        assert raw != "v"

        client.get.return_value = raw
        assert kv.get("k") == "v"

    def test_tampered_value_dropped(self):
        client = MagicMock()
        client.get.return_value = "tampered.value"
        kv = RedisKeyValueStore("client-secret-0123456789", client=client)
        assert kv.get("k") is None
        client.delete.assert_called_once_with("client:k")

    def test_requires_connection(self):
        with pytest.raises(ValueError):
            RedisKeyValueStore("client-secret-0123456789")
