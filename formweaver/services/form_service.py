"""Form service - business logic for form CRUD, lifecycle, and the published-form cache."""

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from formweaver.core.config import settings
from formweaver.db.enums import FormStatus, ROLES_CAN_PUBLISH, Role
from formweaver.db.models import Form, now_ms
from formweaver.schemas.forms import FormCreate, FormField, FormUpdate
from formweaver.utils.pagination import CursorPage, decode_cursor, encode_cursor

logger = logging.getLogger(__name__)

# Statuses only owners and admins may move a form into
RESTRICTED_STATUSES = {FormStatus.PUBLISHED.value, FormStatus.ARCHIVED.value}


def form_cache_key(form_id: UUID | str) -> str:
    return f"form:{form_id}"


def can_set_status(role: Role, status: str) -> bool:
    """Editors may keep forms in draft; publish/archive needs owner or admin."""
    if status in RESTRICTED_STATUSES:
        return role in ROLES_CAN_PUBLISH
    return True


def _dump_schema(fields: list[FormField]) -> list[dict[str, Any]]:
    return [field.model_dump(exclude_none=True) for field in fields]


def form_snapshot(form: Form) -> dict[str, Any]:
    """JSON-safe view of a form, shared by responses and the read cache."""
    return {
        "id": str(form.id),
        "workspace_id": str(form.workspace_id),
        "title": form.title,
        "description": form.description,
        "schema": form.schema_json,
        "status": form.status,
        "version": form.version,
        "created_by": str(form.created_by),
        "created_at": form.created_at,
        "updated_at": form.updated_at,
    }


# =============================================================================
# Queries
# =============================================================================

def get_form(db: Session, workspace_id: UUID, form_id: UUID) -> Form | None:
    """Get a live (not soft-deleted) form, scoped to the workspace."""
    return db.query(Form).filter(
        Form.id == form_id,
        Form.workspace_id == workspace_id,
        Form.deleted_at.is_(None),
    ).first()


def read_form(db: Session, kv, workspace_id: UUID, form_id: UUID) -> tuple[dict | None, bool]:
    """
    Read a form through the published-form cache.

    Returns (snapshot, cached). A cached entry is only served to the workspace
    that owns it; anything else falls through to the database. Only published
    forms are written to the cache.
    """
    key = form_cache_key(form_id)
    hit = kv.get(key)
    if hit.ok:
        try:
            snapshot = json.loads(hit.value)
        except ValueError:
            logger.warning("Dropping unreadable cache entry for form %s", form_id)
            kv.delete(key)
            snapshot = None
        if snapshot and snapshot.get("workspace_id") == str(workspace_id):
            return snapshot, True

    form = get_form(db, workspace_id, form_id)
    if not form:
        return None, False

    snapshot = form_snapshot(form)
    if form.status == FormStatus.PUBLISHED.value:
        kv.put(key, json.dumps(snapshot), ttl_seconds=settings.FORM_CACHE_TTL_SECONDS)
    return snapshot, False


def invalidate_form_cache(kv, form_id: UUID) -> None:
    result = kv.delete(form_cache_key(form_id))
    if not result.ok:
        logger.warning("Failed to invalidate cache for form %s: %s", form_id, result.failure)


def list_forms(
    db: Session,
    workspace_id: UUID,
    limit: int,
    cursor: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> CursorPage[Form]:
    """
    List live forms, newest first, ordered by (created_at DESC, id ASC).

    Uses the same opaque cursor format as the submission pager.
    """
    query = db.query(Form).filter(
        Form.workspace_id == workspace_id,
        Form.deleted_at.is_(None),
    )
    if status:
        query = query.filter(Form.status == status)
    if search:
        query = query.filter(
            or_(
                Form.title.icontains(search, autoescape=True),
                Form.description.icontains(search, autoescape=True),
            )
        )

    position = decode_cursor(cursor)
    if position:
        query = query.filter(
            or_(
                Form.created_at < position.sort_value,
                (Form.created_at == position.sort_value) & (Form.id > position.row_id),
            )
        )

    rows = query.order_by(Form.created_at.desc(), Form.id.asc()).limit(limit + 1).all()
    has_next = len(rows) > limit
    items = rows[:limit]
    next_cursor = encode_cursor(items[-1].created_at, items[-1].id) if has_next and items else None
    return CursorPage(items=items, has_next_page=has_next, next_cursor=next_cursor)


# =============================================================================
# Mutations
# =============================================================================

def create_form(db: Session, workspace_id: UUID, user_id: UUID, data: FormCreate) -> Form:
    timestamp = now_ms()
    form = Form(
        workspace_id=workspace_id,
        title=data.title,
        description=data.description,
        schema_json=_dump_schema(data.form_schema),
        status=data.status,
        version=1,
        created_by=user_id,
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    return form


def update_form(db: Session, kv, form: Form, data: FormUpdate) -> Form:
    """
    Apply a partial update. Only fields present in the request are touched;
    an explicit null description clears it. Every update bumps the version.
    """
    provided = data.model_fields_set
    if "title" in provided and data.title is not None:
        form.title = data.title
    if "description" in provided:
        form.description = data.description
    if "form_schema" in provided and data.form_schema is not None:
        form.schema_json = _dump_schema(data.form_schema)
    if "status" in provided and data.status is not None:
        form.status = data.status

    form.version += 1
    form.updated_at = now_ms()
    db.commit()
    db.refresh(form)

    invalidate_form_cache(kv, form.id)
    return form


def change_status(db: Session, kv, form: Form, status: str) -> Form:
    form.status = status
    form.version += 1
    form.updated_at = now_ms()
    db.commit()
    db.refresh(form)

    invalidate_form_cache(kv, form.id)
    return form


def soft_delete_form(db: Session, kv, form: Form) -> None:
    """Hide the form from every query; its submissions are kept."""
    timestamp = now_ms()
    form.deleted_at = timestamp
    form.status = FormStatus.ARCHIVED.value
    form.updated_at = timestamp
    db.commit()

    invalidate_form_cache(kv, form.id)


def duplicate_form(db: Session, form: Form, user_id: UUID) -> Form:
    """Copy a form into a fresh draft owned by the caller."""
    timestamp = now_ms()
    copy = Form(
        workspace_id=form.workspace_id,
        title=f"{form.title} (Copy)"[:100],
        description=form.description,
        schema_json=list(form.schema_json or []),
        status=FormStatus.DRAFT.value,
        version=1,
        created_by=user_id,
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return copy
