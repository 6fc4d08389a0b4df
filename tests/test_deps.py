"""Tests for the bearer-token dependencies."""
import pytest
from fastapi import HTTPException
from starlette.requests import Request

from formweaver.core.config import settings
from formweaver.core.deps import get_auth_context, get_optional_auth_context
from formweaver.core.security import ACCESS, REFRESH, TokenSubject, issue_token

SUBJECT = TokenSubject(
    user_id="6f1c1c3e-9a57-4a70-8f55-1b7d2a0d9e11",
    email="a@b.com",
    workspace_id="0b5f1a5e-2f53-4e0b-9d8e-3a0c2e9f4d21",
    role="editor",
)


def _request(authorization: str | None = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def test_auth_context_from_access_token():
    token = issue_token(SUBJECT, ACCESS, settings.JWT_SECRET)

    context = get_auth_context(_request(f"Bearer {token}"), settings)

    assert str(context.user_id) == SUBJECT.user_id
    assert str(context.workspace_id) == SUBJECT.workspace_id
    assert context.email == SUBJECT.email
    assert context.role == "editor"


def test_auth_context_rejects_refresh_token():
    token = issue_token(SUBJECT, REFRESH, settings.JWT_SECRET)

    with pytest.raises(HTTPException) as exc_info:
        get_auth_context(_request(f"Bearer {token}"), settings)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid token type"
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_auth_context_rejects_non_uuid_subject():
    subject = TokenSubject(user_id="not-a-uuid", email="a@b.com")
    token = issue_token(subject, ACCESS, settings.JWT_SECRET)

    with pytest.raises(HTTPException) as exc_info:
        get_auth_context(_request(f"Bearer {token}"), settings)

    assert exc_info.value.detail == "Invalid or expired token"


def test_optional_auth_context_returns_none_instead_of_failing():
    assert get_optional_auth_context(_request(), settings) is None
    assert get_optional_auth_context(_request("Basic abc"), settings) is None
    assert get_optional_auth_context(_request("Bearer junk"), settings) is None

    token = issue_token(SUBJECT, ACCESS, settings.JWT_SECRET)
    context = get_optional_auth_context(_request(f"Bearer {token}"), settings)
    assert context is not None
    assert str(context.user_id) == SUBJECT.user_id
