"""Tests for the fixed-window rate limiter."""

import pytest
from starlette.requests import Request

from formweaver.core import rate_limit
from formweaver.core.kv_store import MemoryKeyValueStore, StoreFailure, StoreResult
from formweaver.core.rate_limit import (
    RateLimitConfig,
    check_rate_limit,
    get_client_ip,
    rate_limit_headers,
    rate_limit_key,
)

CONFIG = RateLimitConfig(window_ms=60_000, max_requests=3)
WINDOW_START = 1_700_000_040_000  # multiple of 60_000


class UnavailableReadStore:
    def get(self, key):
        return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, "connection refused")

    def put(self, key, value, ttl_seconds=None):
        raise AssertionError("should not write after a failed read")


class UnavailableWriteStore:
    def get(self, key):
        return StoreResult.fail(StoreFailure.NOT_FOUND)

    def put(self, key, value, ttl_seconds=None):
        return StoreResult.fail(StoreFailure.STORE_UNAVAILABLE, "read-only replica")


class ExplodingStore:
    def get(self, key):
        raise RuntimeError("boom")

    def put(self, key, value, ttl_seconds=None):
        raise RuntimeError("boom")


class RecordingStore(MemoryKeyValueStore):
    def __init__(self):
        super().__init__()
        self.ttls = []

    def put(self, key, value, ttl_seconds=None):
        self.ttls.append(ttl_seconds)
        return super().put(key, value, ttl_seconds)


def _request(headers: dict[str, str]) -> Request:
    raw = [(name.lower().encode(), value.encode()) for name, value in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


# =============================================================================
# Algorithm
# =============================================================================

def test_denies_after_max_requests_in_window():
    store = MemoryKeyValueStore()
    now = WINDOW_START + 1_000

    results = [check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=now) for _ in range(5)]

    assert [r.allowed for r in results] == [True, True, True, False, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0, 0]
    assert all(r.limit == 3 for r in results)


def test_denial_reports_window_end_and_retry_after():
    store = MemoryKeyValueStore()
    now = WINDOW_START + 15_500
    for _ in range(3):
        check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=now)

    denied = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=now)

    assert denied.allowed is False
    assert denied.reset == (WINDOW_START + 60_000) // 1000
    assert denied.retry_after == 45  # ceil(44.5)


def test_new_window_allows_again():
    store = MemoryKeyValueStore()
    for _ in range(4):
        check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START + 59_999)

    result = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START + 60_000)

    assert result.allowed is True
    assert result.remaining == CONFIG.max_requests - 1


def test_identities_and_routes_have_separate_counters():
    store = MemoryKeyValueStore()
    now = WINDOW_START
    for _ in range(3):
        check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=now)

    assert check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=now).allowed is False
    assert check_rate_limit(store, "5.6.7.8", "submit", CONFIG, now_ms=now).allowed is True
    assert check_rate_limit(store, "1.2.3.4", "other", CONFIG, now_ms=now).allowed is True


def test_counter_key_and_ttl():
    store = RecordingStore()
    check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START + 30_200)

    assert store.keys() == [f"ratelimit:1.2.3.4:submit:{WINDOW_START}"]
    assert store.ttls == [30]  # ceil(29.8)
    assert rate_limit_key("unknown", "submit", 0) == "ratelimit:unknown:submit:0"


# =============================================================================
# Fail-open
# =============================================================================

@pytest.mark.parametrize("store", [UnavailableReadStore(), UnavailableWriteStore(), ExplodingStore()])
def test_store_failures_allow_request(store):
    result = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START)

    assert result.allowed is True
    assert result.remaining == CONFIG.max_requests - 1
    assert result.retry_after is None


def test_corrupt_counter_fails_open():
    store = MemoryKeyValueStore()
    store.put(rate_limit_key("1.2.3.4", "submit", WINDOW_START), "not-a-number")

    result = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START)

    assert result.allowed is True


# =============================================================================
# Client identity / headers
# =============================================================================

def test_client_ip_prefers_edge_header():
    request = _request({
        "CF-Connecting-IP": "203.0.113.7",
        "X-Forwarded-For": "198.51.100.1, 10.0.0.1",
    })
    assert get_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_first_forwarded_hop():
    request = _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})
    assert get_client_ip(request) == "198.51.100.1"


def test_client_ip_unknown_when_no_headers():
    assert get_client_ip(_request({})) == rate_limit.UNKNOWN_CLIENT == "unknown"


def test_headers_include_retry_after_only_when_denied():
    store = MemoryKeyValueStore()
    allowed = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START)
    headers = rate_limit_headers(allowed)
    assert headers == {
        "X-RateLimit-Limit": "3",
        "X-RateLimit-Remaining": "2",
        "X-RateLimit-Reset": str((WINDOW_START + 60_000) // 1000),
    }

    for _ in range(3):
        denied = check_rate_limit(store, "1.2.3.4", "submit", CONFIG, now_ms=WINDOW_START)
    denied_headers = rate_limit_headers(denied)
    assert denied_headers["X-RateLimit-Remaining"] == "0"
    assert denied_headers["Retry-After"] == "60"
