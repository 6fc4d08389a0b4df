"""Tests for refresh-token storage."""

import json
import uuid

from formweaver.core.kv_store import MemoryKeyValueStore, StoreFailure, StoreResult
from formweaver.services import session_service


class UnavailableStore:
    def get(self, key):
        return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, "down")

    def put(self, key, value, ttl_seconds=None):
        return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, "down")

    def delete(self, key):
        return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, "down")


def test_store_and_read_refresh_token():
    kv = MemoryKeyValueStore()
    user_id = uuid.uuid4()

    assert session_service.store_refresh_token(kv, user_id, "token-1") is True
    assert session_service.get_refresh_token(kv, user_id) == "token-1"

    payload = json.loads(kv.get(f"refresh:{user_id}").value)
    assert payload["token"] == "token-1"
    assert isinstance(payload["created_at"], int)


def test_new_token_overwrites_previous():
    kv = MemoryKeyValueStore()
    user_id = uuid.uuid4()

    session_service.store_refresh_token(kv, user_id, "token-1")
    session_service.store_refresh_token(kv, user_id, "token-2")

    assert session_service.get_refresh_token(kv, user_id) == "token-2"


def test_refresh_token_expires_after_thirty_days():
    clock = {"now": 1_000_000.0}
    kv = MemoryKeyValueStore(clock=lambda: clock["now"])
    user_id = uuid.uuid4()
    session_service.store_refresh_token(kv, user_id, "token-1")

    clock["now"] += 30 * 86400 - 1
    assert session_service.get_refresh_token(kv, user_id) == "token-1"

    clock["now"] += 1
    assert session_service.get_refresh_token(kv, user_id) is None


def test_revoke_removes_token():
    kv = MemoryKeyValueStore()
    user_id = uuid.uuid4()
    session_service.store_refresh_token(kv, user_id, "token-1")

    session_service.revoke_refresh_token(kv, user_id)

    assert session_service.get_refresh_token(kv, user_id) is None


def test_missing_and_corrupt_entries_read_as_absent():
    kv = MemoryKeyValueStore()
    user_id = uuid.uuid4()
    assert session_service.get_refresh_token(kv, user_id) is None

    kv.put(f"refresh:{user_id}", "{not json")
    assert session_service.get_refresh_token(kv, user_id) is None

    kv.put(f"refresh:{user_id}", json.dumps({"created_at": 1}))
    assert session_service.get_refresh_token(kv, user_id) is None


def test_store_failures_fail_soft():
    kv = UnavailableStore()
    user_id = uuid.uuid4()

    assert session_service.store_refresh_token(kv, user_id, "token-1") is False
    assert session_service.get_refresh_token(kv, user_id) is None
    session_service.revoke_refresh_token(kv, user_id)
