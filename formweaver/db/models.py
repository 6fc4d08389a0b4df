"""SQLAlchemy ORM models for accounts, workspaces, forms, and submissions.

Timestamps are epoch milliseconds (BIGINT) to match the API contract and the
submission cursor format. Column types are dialect-neutral so the same models
run against PostgreSQL and SQLite.
"""

import time
import uuid

from sqlalchemy import (
    JSON, BigInteger, Boolean, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formweaver.db.base import Base
from formweaver.db.enums import FormStatus, PlanType, Role


def now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# Accounts & Tenants
# =============================================================================

class User(Base):
    """
    Application user.

    Email is stored lower-cased; uniqueness is enforced by the database.
    Users are never hard-deleted.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)

    memberships: Mapped[list["WorkspaceMember"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )


class Workspace(Base):
    """
    A tenant. Every user gets one at signup and owns it.

    All forms belong to a workspace and must be scoped by workspace_id.
    """
    __tablename__ = "workspaces"
    __table_args__ = (
        Index("idx_workspaces_owner", "owner_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    plan_type: Mapped[str] = mapped_column(
        String(20), default=PlanType.FREE.value, nullable=False
    )
    created_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)

    members: Mapped[list["WorkspaceMember"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
    )
    forms: Mapped[list["Form"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
    )


class WorkspaceMember(Base):
    """
    Links a user to a workspace with a role.

    Constraint: UNIQUE(user_id, workspace_id), one membership per pair.
    """
    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_workspace_member"),
        Index("idx_workspace_members_workspace", "workspace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), default=Role.VIEWER.value, nullable=False)
    invited_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    joined_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    user: Mapped["User"] = relationship(back_populates="memberships")
    workspace: Mapped["Workspace"] = relationship(back_populates="members")


# =============================================================================
# Forms & Submissions
# =============================================================================

class Form(Base):
    """
    Form definition owned by a workspace.

    ``schema_json`` is an ordered list of field definitions. Deleting sets
    ``deleted_at`` (soft delete); deleted forms are invisible to every query.
    """
    __tablename__ = "forms"
    __table_args__ = (
        Index("idx_forms_workspace", "workspace_id", "created_at"),
        Index("idx_forms_status", "workspace_id", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    schema_json: Mapped[list] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=FormStatus.DRAFT.value, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    workspace: Mapped["Workspace"] = relationship(back_populates="forms")
    submissions: Mapped[list["Submission"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
    )


class Submission(Base):
    """
    A public response to a published form. Immutable once created.

    Paged in (submitted_at DESC, id ASC) order; id breaks timestamp ties.
    """
    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_form", "form_id", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
    )
    data_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    submitted_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)

    form: Mapped["Form"] = relationship(back_populates="submissions")
