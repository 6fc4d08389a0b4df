"""Submission service - public ingest and the keyset pager over the submission log.

Listing order is (submitted_at DESC, id ASC). The cursor carries the last
returned row's (submitted_at, id); the next page continues strictly after it:

    submitted_at < ts OR (submitted_at = ts AND id > last_id)

Rows inserted after a walk has started sort ahead of its cursor and are never
re-surfaced. The total is a separate count without the cursor and may drift
from the paged rows under concurrent writes.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from formweaver.db.enums import FormStatus
from formweaver.db.models import Form, Submission, now_ms
from formweaver.utils.pagination import CursorPage, decode_cursor, encode_cursor

logger = logging.getLogger(__name__)


def get_live_form(db: Session, form_id: UUID) -> Form | None:
    """Public lookup by id, regardless of workspace. Soft-deleted forms are absent."""
    return db.query(Form).filter(
        Form.id == form_id,
        Form.deleted_at.is_(None),
    ).first()


def is_accepting_submissions(form: Form) -> bool:
    return form.status == FormStatus.PUBLISHED.value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def missing_required_fields(form: Form, data: dict[str, Any]) -> list[dict[str, str]]:
    """Field errors for required schema fields that are absent or blank."""
    errors = []
    for field in form.schema_json or []:
        if not isinstance(field, dict) or not field.get("required"):
            continue
        field_id = field.get("id")
        if field_id and _is_blank(data.get(field_id)):
            label = field.get("label") or field_id
            errors.append({"field": field_id, "message": f"{label} is required"})
    return errors


def create_submission(
    db: Session,
    form: Form,
    data: dict[str, Any],
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> Submission:
    submission = Submission(
        form_id=form.id,
        data_json=data,
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
        referrer=referrer[:1000] if referrer else None,
        submitted_at=now_ms(),
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


# =============================================================================
# Pager
# =============================================================================

def _filtered_query(
    db: Session,
    form_id: UUID,
    date_from: int | None,
    date_to: int | None,
    search: str | None,
):
    query = db.query(Submission).filter(Submission.form_id == form_id)
    if date_from is not None:
        query = query.filter(Submission.submitted_at >= date_from)
    if date_to is not None:
        query = query.filter(Submission.submitted_at <= date_to)
    if search:
        # Raw substring match over the serialized answers; can match across fields.
        query = query.filter(cast(Submission.data_json, String).contains(search, autoescape=True))
    return query


def list_submissions(
    db: Session,
    form_id: UUID,
    limit: int,
    cursor: str | None = None,
    date_from: int | None = None,
    date_to: int | None = None,
    search: str | None = None,
) -> CursorPage[Submission]:
    """
    One page of a form's submissions.

    An undecodable cursor is ignored and the walk restarts from the top.
    """
    query = _filtered_query(db, form_id, date_from, date_to, search)
    total = query.count()

    position = decode_cursor(cursor)
    if position:
        query = query.filter(
            or_(
                Submission.submitted_at < position.sort_value,
                (Submission.submitted_at == position.sort_value)
                & (Submission.id > position.row_id),
            )
        )

    rows = (
        query.order_by(Submission.submitted_at.desc(), Submission.id.asc())
        .limit(limit + 1)
        .all()
    )
    has_next = len(rows) > limit
    items = rows[:limit]
    next_cursor = None
    if has_next and items:
        next_cursor = encode_cursor(items[-1].submitted_at, items[-1].id)

    return CursorPage(items=items, has_next_page=has_next, next_cursor=next_cursor, total=total)


def get_submission(
    db: Session,
    workspace_id: UUID,
    form_id: UUID,
    submission_id: UUID,
) -> tuple[Submission, Form] | None:
    """Single submission, only if its form is live and belongs to the workspace."""
    row = (
        db.query(Submission, Form)
        .join(Form, Submission.form_id == Form.id)
        .filter(
            Submission.id == submission_id,
            Submission.form_id == form_id,
            Form.workspace_id == workspace_id,
            Form.deleted_at.is_(None),
        )
        .first()
    )
    if not row:
        return None
    submission, form = row
    return submission, form
