"""Cursor pagination utilities for list endpoints.

Cursors are URL-safe base64 of ``"{sort_value}|{id}"`` for the last row of a
page. The encoding only hides the ordering fields; it is not signed, and a
tampered cursor can at worst produce a wrong or empty page of data the caller
is already allowed to see.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Generic, TypeVar
from uuid import UUID

from fastapi import Query


T = TypeVar("T")

# Pagination limits
DEFAULT_LIMIT = 50
MAX_LIMIT = 100

CURSOR_SEPARATOR = "|"

# Sort values are BIGINT epoch milliseconds
MIN_SORT_VALUE = -(2**63)
MAX_SORT_VALUE = 2**63 - 1


@dataclass(frozen=True)
class Cursor:
    """Decoded position: sort key and id of the last row already returned."""
    sort_value: int
    row_id: UUID


def encode_cursor(sort_value: int, row_id: UUID) -> str:
    raw = f"{sort_value}{CURSOR_SEPARATOR}{row_id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str | None) -> Cursor | None:
    """
    Decode an opaque cursor.

    Anything that does not decode to exactly two ``|``-separated parts (an
    integer that fits a BIGINT and a UUID) is treated as no cursor, so
    pagination restarts from the first page instead of failing the request.
    """
    if not cursor:
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None

    parts = raw.split(CURSOR_SEPARATOR)
    if len(parts) != 2:
        return None
    try:
        sort_value = int(parts[0])
        row_id = UUID(parts[1])
    except ValueError:
        return None
    if not MIN_SORT_VALUE <= sort_value <= MAX_SORT_VALUE:
        return None
    return Cursor(sort_value=sort_value, row_id=row_id)


def clamp_limit(limit: int | None) -> int:
    """Apply the default page size and clamp oversized requests to the cap."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


@dataclass
class CursorParams:
    """Pagination parameters from query string."""
    limit: int
    cursor: str | None


def get_cursor_params(
    limit: int | None = Query(None, ge=1, description=f"Items per page (default {DEFAULT_LIMIT}, max {MAX_LIMIT})"),
    cursor: str | None = Query(None, description="Opaque cursor from a previous page"),
) -> CursorParams:
    """
    Cursor pagination dependency. Limits above the cap are clamped, not rejected.

    Usage:
        @router.get("/items")
        def list_items(pagination: CursorParams = Depends(get_cursor_params)):
            ...
    """
    return CursorParams(limit=clamp_limit(limit), cursor=cursor)


@dataclass
class CursorPage(Generic[T]):
    """One page of a keyset-paginated listing."""
    items: list[T]
    has_next_page: bool
    next_cursor: str | None
    total: int | None = None
