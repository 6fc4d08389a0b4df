"""Utility modules."""

from formweaver.utils.pagination import (
    CursorPage,
    CursorParams,
    clamp_limit,
    decode_cursor,
    encode_cursor,
    get_cursor_params,
)

__all__ = [
    # Pagination
    "CursorPage",
    "CursorParams",
    "clamp_limit",
    "decode_cursor",
    "encode_cursor",
    "get_cursor_params",
]
