"""Authentication service - signup, login, token rotation, verification and reset flows."""

import logging
import re
import secrets
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from formweaver.core.config import settings
from formweaver.core.kv_store import StoreFailure, StoreResult
from formweaver.core.passwords import hash_password, verify_password
from formweaver.core.security import (
    REFRESH,
    InvalidToken,
    TokenPair,
    TokenSubject,
    generate_one_time_token,
    issue_token_pair,
    verify_token,
)
from formweaver.db.enums import Role
from formweaver.db.models import User, Workspace, WorkspaceMember, now_ms
from formweaver.services import session_service

logger = logging.getLogger(__name__)

_SLUG_INVALID_CHARS = re.compile(r"[^a-z0-9-]+")


@dataclass
class AccountBundle:
    """A user with the workspace and role their tokens are scoped to."""
    user: User
    workspace: Workspace
    role: Role


def normalize_email(email: str) -> str:
    return email.strip().lower()


def verify_key(token: str) -> str:
    return f"verify:{token}"


def reset_key(token: str) -> str:
    return f"reset:{token}"


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


# =============================================================================
# Signup
# =============================================================================

def _workspace_slug(db: Session, email: str) -> str:
    """
    ``{local part}-workspace``, with a short random suffix when taken.

    The unique index on slug remains the authority; a concurrent signup that
    wins the same slug surfaces as an IntegrityError.
    """
    local = normalize_email(email).split("@", 1)[0]
    local = _SLUG_INVALID_CHARS.sub("-", local).strip("-") or "user"
    slug = f"{local}-workspace"
    if db.query(Workspace.id).filter(Workspace.slug == slug).first():
        slug = f"{slug}-{secrets.token_hex(3)}"
    return slug


def _build_workspace(db: Session, user: User, name: str) -> Workspace:
    return Workspace(
        name=f"{name}'s Workspace",
        slug=_workspace_slug(db, user.email),
        owner_id=user.id,
    )


def _build_membership(user: User, workspace: Workspace) -> WorkspaceMember:
    return WorkspaceMember(
        user_id=user.id,
        workspace_id=workspace.id,
        role=Role.OWNER.value,
        joined_at=now_ms(),
    )


def _conflict_message(exc: IntegrityError) -> str:
    """Name the email only when the violated constraint is on it."""
    if "email" in str(exc.orig).lower():
        return "Email already registered"
    return "Account could not be created, please try again"


def signup(db: Session, email: str, password: str, name: str) -> StoreResult[AccountBundle]:
    """
    Create user, workspace, and owner membership in one transaction.

    Any failure after the user insert rolls everything back, so no partial
    account survives. Unexpected errors are re-raised after rollback.

    Returns:
        StoreResult with the new account, or CONSTRAINT_VIOLATION when the
        email is already registered or another unique constraint (such as a
        concurrently taken workspace slug) rejects the insert.
    """
    email = normalize_email(email)
    if get_user_by_email(db, email):
        return StoreResult.fail(StoreFailure.CONSTRAINT_VIOLATION, "Email already registered")

    try:
        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name,
            email_verified=False,
        )
        db.add(user)
        db.flush()  # Get user.id

        workspace = _build_workspace(db, user, name)
        db.add(workspace)
        db.flush()

        membership = _build_membership(user, workspace)
        db.add(membership)
        db.flush()

        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Signup rejected by constraint: %s", exc.orig)
        return StoreResult.fail(StoreFailure.CONSTRAINT_VIOLATION, _conflict_message(exc))
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    db.refresh(workspace)
    return StoreResult.success(AccountBundle(user=user, workspace=workspace, role=Role.OWNER))


# =============================================================================
# Login / Sessions
# =============================================================================

def get_primary_membership(db: Session, user_id: UUID) -> WorkspaceMember | None:
    """Owner membership first, otherwise the oldest one."""
    memberships = (
        db.query(WorkspaceMember)
        .filter(WorkspaceMember.user_id == user_id)
        .order_by(WorkspaceMember.invited_at.asc())
        .all()
    )
    for membership in memberships:
        if membership.role == Role.OWNER.value:
            return membership
    return memberships[0] if memberships else None


def authenticate(db: Session, email: str, password: str) -> AccountBundle | None:
    """
    Resolve credentials to an account.

    Returns None for an unknown email, a wrong password, or a user without
    any workspace. Callers must not reveal which.
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None

    membership = get_primary_membership(db, user.id)
    if not membership:
        logger.warning("User %s has no workspace membership", user.id)
        return None

    return AccountBundle(user=user, workspace=membership.workspace, role=Role(membership.role))


def start_session(kv, account: AccountBundle, secret: str) -> TokenPair:
    """Issue a token pair and make its refresh token the only live one."""
    subject = TokenSubject(
        user_id=str(account.user.id),
        email=account.user.email,
        workspace_id=str(account.workspace.id),
        role=account.role.value,
    )
    tokens = issue_token_pair(subject, secret)
    session_service.store_refresh_token(kv, account.user.id, tokens.refresh_token)
    return tokens


def refresh_session(db: Session, kv, refresh_token: str, secret: str) -> TokenPair | None:
    """
    Rotate a refresh token.

    The token must verify, be of kind refresh, and equal the stored token for
    its user. The role is re-read from the membership so role changes apply
    on the next refresh.
    """
    try:
        claims = verify_token(refresh_token, secret)
    except InvalidToken:
        return None
    if claims.type != REFRESH:
        return None

    try:
        user_id = UUID(claims.sub)
        workspace_id = UUID(claims.workspace_id) if claims.workspace_id else None
    except ValueError:
        return None

    stored = session_service.get_refresh_token(kv, user_id)
    if stored is None or not secrets.compare_digest(stored, refresh_token):
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    membership = None
    if workspace_id:
        membership = db.query(WorkspaceMember).filter(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
        ).first()
    if not membership:
        return None

    account = AccountBundle(user=user, workspace=membership.workspace, role=Role(membership.role))
    return start_session(kv, account, secret)


def logout(kv, user_id: UUID) -> None:
    session_service.revoke_refresh_token(kv, user_id)


# =============================================================================
# Email verification
# =============================================================================

def create_verification_token(kv, user: User) -> str | None:
    """Store a single-use verification token (24h). Returns None if the store is down."""
    token = generate_one_time_token()
    result = kv.put(verify_key(token), str(user.id), ttl_seconds=settings.VERIFY_TOKEN_TTL_SECONDS)
    if not result.ok:
        logger.warning("Could not store verification token for user %s", user.id)
        return None
    logger.info("Issued email verification token for user %s", user.id)
    return token


def verify_email(db: Session, kv, token: str) -> StoreResult[User]:
    """Consume a verification token and mark the user's email verified."""
    found = kv.get(verify_key(token))
    if not found.ok:
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired verification token")

    try:
        user_id = UUID(found.value)
    except ValueError:
        kv.delete(verify_key(token))
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired verification token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        kv.delete(verify_key(token))
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired verification token")

    user.email_verified = True
    user.updated_at = now_ms()
    db.commit()
    db.refresh(user)

    kv.delete(verify_key(token))
    return StoreResult.success(user)


# =============================================================================
# Password reset
# =============================================================================

def request_password_reset(db: Session, kv, email: str) -> str | None:
    """
    Store a reset token for a known email (1h).

    Returns the token, or None for unknown emails. The endpoint responds the
    same either way.
    """
    user = get_user_by_email(db, email)
    if not user:
        return None

    token = generate_one_time_token()
    result = kv.put(reset_key(token), str(user.id), ttl_seconds=settings.RESET_TOKEN_TTL_SECONDS)
    if not result.ok:
        logger.warning("Could not store password reset token for user %s", user.id)
        return None
    logger.info("Issued password reset token for user %s", user.id)
    return token


def confirm_password_reset(db: Session, kv, token: str, new_password: str) -> StoreResult[User]:
    """Consume a reset token, set the new password, and revoke the refresh token."""
    found = kv.get(reset_key(token))
    if not found.ok:
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired reset token")

    try:
        user_id = UUID(found.value)
    except ValueError:
        kv.delete(reset_key(token))
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired reset token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        kv.delete(reset_key(token))
        return StoreResult.fail(StoreFailure.NOT_FOUND, "Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.updated_at = now_ms()
    db.commit()
    db.refresh(user)

    kv.delete(reset_key(token))
    session_service.revoke_refresh_token(kv, user.id)
    logger.info("Password reset completed for user %s", user.id)
    return StoreResult.success(user)
