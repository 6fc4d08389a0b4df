"""Authentication router: signup, login, token refresh, verification and password reset."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from formweaver.core.config import Settings, get_settings
from formweaver.core.deps import get_auth_context, get_db
from formweaver.core.kv_store import StoreFailure, get_kv_store
from formweaver.core.rate_limit import AUTH_LIMIT, limiter
from formweaver.db.enums import Role
from formweaver.db.models import User, Workspace, WorkspaceMember
from formweaver.schemas.auth import (
    AuthContext,
    AuthData,
    EmailVerificationRequest,
    LoginRequest,
    MeData,
    RefreshRequest,
    ResetPasswordConfirmRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenPairRead,
    UserRead,
    WorkspaceRead,
)
from formweaver.schemas.common import ApiResponse
from formweaver.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If an account exists for that email, a password reset link has been sent"


def _user_read(user: User) -> UserRead:
    return UserRead.model_validate(user, from_attributes=True)


def _workspace_read(workspace: Workspace) -> WorkspaceRead:
    return WorkspaceRead.model_validate(workspace, from_attributes=True)


def _auth_data(account: auth_service.AccountBundle, tokens) -> AuthData:
    return AuthData(
        user=_user_read(account.user),
        workspace=_workspace_read(account.workspace),
        role=account.role,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


# =============================================================================
# Signup / Login
# =============================================================================

@router.post("/signup", response_model=ApiResponse[AuthData], status_code=201)
@limiter.limit(AUTH_LIMIT)
def signup(
    request: Request,
    body: SignupRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    app_settings: Settings = Depends(get_settings),
):
    """
    Create an account with its own workspace.

    The new user owns the workspace. A verification token is stored for the
    email confirmation flow; the email itself is sent out of band.
    """
    result = auth_service.signup(db, body.email, body.password, body.name)
    if not result.ok:
        if result.failure == StoreFailure.CONSTRAINT_VIOLATION:
            raise HTTPException(status_code=409, detail=result.detail or "Email already registered")
        raise HTTPException(status_code=500, detail="Could not create account")

    account = result.value
    auth_service.create_verification_token(kv, account.user)
    tokens = auth_service.start_session(kv, account, app_settings.JWT_SECRET)
    logger.info("User %s signed up with workspace %s", account.user.id, account.workspace.id)

    return ApiResponse(
        data=_auth_data(account, tokens),
        message="Account created successfully",
    )


@router.post("/login", response_model=ApiResponse[AuthData])
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    app_settings: Settings = Depends(get_settings),
):
    """Exchange credentials for a token pair. Failures never say which part was wrong."""
    account = auth_service.authenticate(db, body.email, body.password)
    if not account:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    tokens = auth_service.start_session(kv, account, app_settings.JWT_SECRET)
    return ApiResponse(data=_auth_data(account, tokens), message="Login successful")


# =============================================================================
# Session
# =============================================================================

@router.post("/refresh", response_model=ApiResponse[TokenPairRead])
@limiter.limit(AUTH_LIMIT)
def refresh(
    request: Request,
    body: RefreshRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    app_settings: Settings = Depends(get_settings),
):
    """Rotate the refresh token. The presented token stops working afterwards."""
    tokens = auth_service.refresh_session(db, kv, body.refresh_token, app_settings.JWT_SECRET)
    if not tokens:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ApiResponse(
        data=TokenPairRead(access_token=tokens.access_token, refresh_token=tokens.refresh_token),
    )


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    auth: AuthContext = Depends(get_auth_context),
    kv=Depends(get_kv_store),
):
    auth_service.logout(kv, auth.user_id)
    return ApiResponse(message="Logged out")


@router.get("/me", response_model=ApiResponse[MeData])
def me(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Current user with the workspace their token is scoped to."""
    user = db.query(User).filter(User.id == auth.user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    membership = None
    if auth.workspace_id:
        membership = db.query(WorkspaceMember).filter(
            WorkspaceMember.user_id == user.id,
            WorkspaceMember.workspace_id == auth.workspace_id,
        ).first()
    if not membership:
        raise HTTPException(status_code=403, detail="Access denied: not a member of this workspace")

    return ApiResponse(
        data=MeData(
            user=_user_read(user),
            workspace=_workspace_read(membership.workspace),
            role=Role(membership.role),
        )
    )


# =============================================================================
# Email verification / Password reset
# =============================================================================

@router.post("/verify-email", response_model=ApiResponse[UserRead])
@limiter.limit(AUTH_LIMIT)
def verify_email(
    request: Request,
    body: EmailVerificationRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
):
    result = auth_service.verify_email(db, kv, body.token)
    if not result.ok:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    return ApiResponse(data=_user_read(result.value), message="Email verified successfully")


@router.post("/reset-password", response_model=ApiResponse[None])
@limiter.limit(AUTH_LIMIT)
def request_password_reset(
    request: Request,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
):
    """Always answers the same way so the endpoint cannot be used to discover accounts."""
    auth_service.request_password_reset(db, kv, body.email)
    return ApiResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password/confirm", response_model=ApiResponse[None])
@limiter.limit(AUTH_LIMIT)
def confirm_password_reset(
    request: Request,
    body: ResetPasswordConfirmRequest,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
):
    result = auth_service.confirm_password_reset(db, kv, body.token, body.new_password)
    if not result.ok:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    return ApiResponse(message="Password has been reset. Please log in again.")
