"""Signed access/refresh tokens and one-time token generation."""

import secrets
import time
from dataclasses import dataclass
from typing import Literal

import jwt

from formweaver.core.config import settings


TokenKind = Literal["access", "refresh"]

ACCESS = "access"
REFRESH = "refresh"
ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "type", "iat", "exp"]


class InvalidToken(Exception):
    """Raised for any signature, format, or expiry failure."""


@dataclass(frozen=True)
class TokenSubject:
    """Identity embedded in every token for a user."""

    user_id: str
    email: str
    workspace_id: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified claim set."""

    sub: str
    email: str
    workspace_id: str | None
    role: str | None
    type: str
    iat: int
    exp: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


# =============================================================================
# Issue / Verify
# =============================================================================

def token_ttl_seconds(kind: TokenKind) -> int:
    if kind == ACCESS:
        return settings.ACCESS_TOKEN_TTL_SECONDS
    if kind == REFRESH:
        return settings.REFRESH_TOKEN_TTL_SECONDS
    raise ValueError(f"Unknown token kind: {kind}")


def issue_token(
    subject: TokenSubject,
    kind: TokenKind,
    secret: str,
    now: int | None = None,
) -> str:
    """
    Create a signed token for the subject.

    Access tokens live one hour, refresh tokens thirty days. ``now`` is epoch
    seconds. Each token carries a random ``jti`` so two tokens issued in the
    same second still differ.
    """
    issued_at = int(now if now is not None else time.time())
    payload = {
        "sub": subject.user_id,
        "email": subject.email,
        "workspace_id": subject.workspace_id,
        "role": subject.role,
        "type": kind,
        "iat": issued_at,
        "exp": issued_at + token_ttl_seconds(kind),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str, now: int | None = None) -> TokenClaims:
    """
    Verify signature and expiry without touching any store.

    Expiry is checked against ``now`` (epoch seconds, default: current time)
    rather than PyJWT's internal clock, so verification is deterministic for
    a given secret and clock. A token is rejected at or after its ``exp``.

    Raises:
        InvalidToken: bad signature, malformed token, missing claims, expired
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidToken("Invalid or expired token") from exc

    current = int(now if now is not None else time.time())
    try:
        exp = int(payload["exp"])
        iat = int(payload["iat"])
    except (TypeError, ValueError) as exc:
        raise InvalidToken("Invalid or expired token") from exc
    if current >= exp:
        raise InvalidToken("Invalid or expired token")
    if payload["type"] not in (ACCESS, REFRESH):
        raise InvalidToken("Invalid or expired token")

    return TokenClaims(
        sub=str(payload["sub"]),
        email=payload.get("email") or "",
        workspace_id=payload.get("workspace_id"),
        role=payload.get("role"),
        type=payload["type"],
        iat=iat,
        exp=exp,
    )


def issue_token_pair(subject: TokenSubject, secret: str, now: int | None = None) -> TokenPair:
    """Issue an access and a refresh token for the same subject and instant."""
    issued_at = int(now if now is not None else time.time())
    return TokenPair(
        access_token=issue_token(subject, ACCESS, secret, now=issued_at),
        refresh_token=issue_token(subject, REFRESH, secret, now=issued_at),
    )


# =============================================================================
# One-time tokens (email verification, password reset)
# =============================================================================

def generate_one_time_token() -> str:
    """Generate cryptographically random token (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)
