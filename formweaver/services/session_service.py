"""Session service - refresh-token persistence for revocation support.

One live refresh token per user is kept at ``refresh:{user_id}``. Storing a
new one replaces the old entry; the replaced token stays cryptographically
valid until expiry but no longer matches the stored value, so refresh rejects
it.
"""

import json
import logging
import time
from uuid import UUID

from formweaver.core.config import settings
from formweaver.core.kv_store import StoreFailure

logger = logging.getLogger(__name__)


def refresh_key(user_id: UUID | str) -> str:
    return f"refresh:{user_id}"


def store_refresh_token(kv, user_id: UUID | str, refresh_token: str) -> bool:
    """Overwrite the stored refresh token for a user. Returns False if the write failed."""
    payload = json.dumps({"token": refresh_token, "created_at": int(time.time() * 1000)})
    result = kv.put(
        refresh_key(user_id),
        payload,
        ttl_seconds=settings.REFRESH_TOKEN_TTL_SECONDS,
    )
    if not result.ok:
        logger.warning("Failed to store refresh token for user %s: %s", user_id, result.failure)
    return result.ok


def get_refresh_token(kv, user_id: UUID | str) -> str | None:
    """
    Return the stored refresh token, or None.

    Fails soft: expired, missing, unreadable, and corrupt entries all read as
    absent.
    """
    result = kv.get(refresh_key(user_id))
    if not result.ok:
        if result.failure != StoreFailure.NOT_FOUND:
            logger.warning("Refresh token lookup failed for user %s: %s", user_id, result.failure)
        return None
    try:
        return json.loads(result.value)["token"]
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding malformed refresh token entry for user %s", user_id)
        return None


def revoke_refresh_token(kv, user_id: UUID | str) -> None:
    """Delete the stored refresh token (logout, password reset)."""
    result = kv.delete(refresh_key(user_id))
    if not result.ok:
        logger.warning("Failed to revoke refresh token for user %s: %s", user_id, result.failure)
