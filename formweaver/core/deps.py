"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from formweaver.core.config import Settings, get_settings
from formweaver.core.security import ACCESS, InvalidToken, verify_token
from formweaver.db.enums import Role
from formweaver.db.models import WorkspaceMember
from formweaver.db.session import SessionLocal
from formweaver.schemas.auth import AuthContext, WorkspaceSession


BEARER_PREFIX = "Bearer "


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_auth_context(
    request: Request,
    app_settings: Settings = Depends(get_settings),
) -> AuthContext:
    """
    Authenticate the request from its ``Authorization: Bearer`` header.

    Signature, expiry and format problems all collapse into the same
    "Invalid or expired token" message.

    Raises:
        HTTPException 401: missing header, bad format, invalid token, wrong kind
    """
    header = request.headers.get("Authorization")
    if not header:
        raise _unauthorized("Missing authorization header")
    if not header.startswith(BEARER_PREFIX):
        raise _unauthorized("Invalid authorization header format")

    token = header[len(BEARER_PREFIX):].strip()
    try:
        claims = verify_token(token, app_settings.JWT_SECRET)
    except InvalidToken:
        raise _unauthorized("Invalid or expired token")

    if claims.type != ACCESS:
        raise _unauthorized("Invalid token type")

    try:
        user_id = UUID(claims.sub)
        workspace_id = UUID(claims.workspace_id) if claims.workspace_id else None
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    return AuthContext(
        user_id=user_id,
        email=claims.email,
        workspace_id=workspace_id,
        role=claims.role,
    )


def get_optional_auth_context(
    request: Request,
    app_settings: Settings = Depends(get_settings),
) -> AuthContext | None:
    """Same as ``get_auth_context`` but returns None instead of failing."""
    try:
        return get_auth_context(request, app_settings)
    except HTTPException:
        return None


def require_workspace_member(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> WorkspaceSession:
    """
    Resolve the caller's membership in the token's workspace.

    The role comes from the membership row, not the token claim, so demotions
    apply immediately.

    Raises:
        HTTPException 403: no membership for the token's workspace
    """
    membership = None
    if auth.workspace_id:
        membership = db.query(WorkspaceMember).filter(
            WorkspaceMember.user_id == auth.user_id,
            WorkspaceMember.workspace_id == auth.workspace_id,
        ).first()

    if not membership or not Role.has_value(membership.role):
        raise HTTPException(status_code=403, detail="Access denied: not a member of this workspace")

    return WorkspaceSession(
        user_id=auth.user_id,
        workspace_id=auth.workspace_id,
        role=Role(membership.role),
    )


def require_roles(allowed_roles: set[Role]):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/forms", dependencies=[Depends(require_roles(ROLES_CAN_EDIT_FORMS))])
    """
    def dependency(session: WorkspaceSession = Depends(require_workspace_member)) -> WorkspaceSession:
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency
