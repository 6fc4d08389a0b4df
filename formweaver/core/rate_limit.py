"""Rate limiting for the FormWeaver API.

Two layers:

- ``limiter``: slowapi per-minute limits on auth endpoints (brute-force guard)
- ``check_rate_limit``: fixed-window counter on the key-value store, used for
  public form submissions. Fails open on store errors.

Fixed windows allow up to 2x the limit in a span straddling a boundary.
"""

import logging
import math
import os
import time
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from formweaver.core.config import settings
from formweaver.core.kv_store import StoreFailure, get_kv_store

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
UNKNOWN_CLIENT = "unknown"

# slowapi keeps its own counters; memory storage is enough for per-process
# brute-force throttling and keeps auth endpoints usable when redis is down.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not IS_TESTING and settings.RATE_LIMIT_AUTH > 0,
)

AUTH_LIMIT = f"{max(settings.RATE_LIMIT_AUTH, 1)}/minute"


@dataclass(frozen=True)
class RateLimitConfig:
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset: int  # epoch seconds
    limit: int
    retry_after: int | None = None


FORM_SUBMISSION_RATE_LIMIT = RateLimitConfig(
    window_ms=settings.SUBMISSION_RATE_LIMIT_WINDOW_SECONDS * 1000,
    max_requests=settings.SUBMISSION_RATE_LIMIT_MAX,
)


def rate_limit_key(identity: str, route_key: str, window_start_ms: int) -> str:
    return f"ratelimit:{identity}:{route_key}:{window_start_ms}"


def _fail_open(config: RateLimitConfig, now_ms: int) -> RateLimitResult:
    return RateLimitResult(
        allowed=True,
        remaining=config.max_requests - 1,
        reset=(now_ms + config.window_ms) // 1000,
        limit=config.max_requests,
    )


def check_rate_limit(
    store,
    identity: str,
    route_key: str,
    config: RateLimitConfig = FORM_SUBMISSION_RATE_LIMIT,
    now_ms: int | None = None,
) -> RateLimitResult:
    """
    Count one request against the current fixed window.

    Windows are aligned to multiples of ``config.window_ms`` so every client
    shares the same boundaries. The store is read then written (no atomic
    increment), so under replication lag the limiter undercounts.

    Any store failure allows the request.
    """
    now = int(now_ms if now_ms is not None else time.time() * 1000)
    window_start = (now // config.window_ms) * config.window_ms
    window_end = window_start + config.window_ms
    key = rate_limit_key(identity, route_key, window_start)
    seconds_to_reset = math.ceil((window_end - now) / 1000)

    try:
        current = store.get(key)
        if current.ok:
            count = int(current.value)
        elif current.failure == StoreFailure.NOT_FOUND:
            count = 0
        else:
            logger.warning("Rate limit store unavailable, allowing request: %s", current.detail)
            return _fail_open(config, now)

        if count >= config.max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset=window_end // 1000,
                limit=config.max_requests,
                retry_after=seconds_to_reset,
            )

        written = store.put(key, str(count + 1), ttl_seconds=seconds_to_reset)
        if not written.ok:
            logger.warning("Rate limit counter write failed, allowing request: %s", written.detail)
            return _fail_open(config, now)
    except Exception:
        logger.exception("Rate limit check failed, allowing request")
        return _fail_open(config, now)

    return RateLimitResult(
        allowed=True,
        remaining=max(0, config.max_requests - count - 1),
        reset=window_end // 1000,
        limit=config.max_requests,
    )


def get_client_ip(request: Request) -> str:
    """
    Client identity for rate limiting.

    Prefers the edge-injected connecting-IP header, then the first hop of
    X-Forwarded-For. Clients with neither share the ``unknown`` bucket.
    """
    edge_ip = request.headers.get(settings.CLIENT_IP_HEADER)
    if edge_ip and edge_ip.strip():
        return edge_ip.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return UNKNOWN_CLIENT


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.allowed and result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def enforce_rate_limit(route_key: str, config: RateLimitConfig = FORM_SUBMISSION_RATE_LIMIT):
    """
    Dependency factory applying the fixed-window limiter to a route.

    Usage:
        @router.post("/submit", dependencies=[Depends(enforce_rate_limit("submit"))])
    """
    def dependency(request: Request, response: Response, store=Depends(get_kv_store)) -> RateLimitResult:
        result = check_rate_limit(store, get_client_ip(request), route_key, config)
        headers = rate_limit_headers(result)
        if not result.allowed:
            raise HTTPException(
                status_code=429,
                detail="Too many requests. Please try again later.",
                headers=headers,
            )
        for name, value in headers.items():
            response.headers[name] = value
        return result
    return dependency
