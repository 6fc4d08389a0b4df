"""Form builder and submission review endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from formweaver.core.deps import get_db, require_roles, require_workspace_member
from formweaver.core.kv_store import get_kv_store
from formweaver.db.enums import (
    FormStatus,
    ROLES_CAN_DELETE_FORMS,
    ROLES_CAN_EDIT_FORMS,
)
from formweaver.db.models import Form, Submission
from formweaver.schemas.auth import WorkspaceSession
from formweaver.schemas.common import ApiResponse
from formweaver.schemas.forms import (
    FormCreate,
    FormDetail,
    FormListData,
    FormRead,
    FormStatusUpdate,
    FormStatusValue,
    FormUpdate,
    SubmissionDetail,
    SubmissionListData,
    SubmissionRead,
)
from formweaver.services import form_service, submission_service
from formweaver.utils.pagination import MAX_SORT_VALUE, CursorParams, get_cursor_params

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["forms"])

FORBIDDEN_STATUS_CHANGE = "Only owners and admins can publish or archive forms"


def _form_read(form: Form) -> FormRead:
    return FormRead.model_validate(form_service.form_snapshot(form))


def _submission_read(submission: Submission) -> SubmissionRead:
    return SubmissionRead(
        id=submission.id,
        form_id=submission.form_id,
        data=submission.data_json or {},
        ip_address=submission.ip_address,
        user_agent=submission.user_agent,
        referrer=submission.referrer,
        submitted_at=submission.submitted_at,
    )


def _get_form_or_404(db: Session, session: WorkspaceSession, form_id: UUID) -> Form:
    form = form_service.get_form(db, session.workspace_id, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


# =============================================================================
# Forms
# =============================================================================

@router.post("", response_model=ApiResponse[FormRead], status_code=201)
def create_form(
    body: FormCreate,
    db: Session = Depends(get_db),
    session: WorkspaceSession = Depends(require_roles(ROLES_CAN_EDIT_FORMS)),
):
    if not form_service.can_set_status(session.role, body.status):
        raise HTTPException(status_code=403, detail=FORBIDDEN_STATUS_CHANGE)

    form = form_service.create_form(db, session.workspace_id, session.user_id, body)
    logger.info("Form %s created in workspace %s", form.id, session.workspace_id)
    return ApiResponse(data=_form_read(form), message="Form created successfully")


@router.get("", response_model=ApiResponse[FormListData])
def list_forms(
    status: FormStatusValue | None = Query(None),
    search: str | None = Query(None, max_length=100),
    pagination: CursorParams = Depends(get_cursor_params),
    db: Session = Depends(get_db),
    session: WorkspaceSession = Depends(require_workspace_member),
):
    """List live forms in the caller's workspace, newest first."""
    page = form_service.list_forms(
        db,
        session.workspace_id,
        limit=pagination.limit,
        cursor=pagination.cursor,
        status=status,
        search=search,
    )
    return ApiResponse(
        data=FormListData(
            items=[_form_read(form) for form in page.items],
            has_next_page=page.has_next_page,
            next_cursor=page.next_cursor,
        )
    )


@router.get("/{form_id}", response_model=ApiResponse[FormDetail])
def get_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    session: WorkspaceSession = Depends(require_workspace_member),
):
    snapshot, cached = form_service.read_form(db, kv, session.workspace_id, form_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return ApiResponse(data=FormDetail.model_validate({**snapshot, "cached": cached}))


@router.put("/{form_id}", response_model=ApiResponse[FormRead])
def update_form(
    form_id: UUID,
    body: FormUpdate,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    session: WorkspaceSession = Depends(require_roles(ROLES_CAN_EDIT_FORMS)),
):
    form = _get_form_or_404(db, session, form_id)
    if body.status and body.status != form.status:
        if not form_service.can_set_status(session.role, body.status):
            raise HTTPException(status_code=403, detail=FORBIDDEN_STATUS_CHANGE)

    form = form_service.update_form(db, kv, form, body)
    return ApiResponse(data=_form_read(form), message="Form updated successfully")


@router.patch("/{form_id}/status", response_model=ApiResponse[FormRead])
def change_form_status(
    form_id: UUID,
    body: FormStatusUpdate,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    session: WorkspaceSession = Depends(require_roles(ROLES_CAN_EDIT_FORMS)),
):
    form = _get_form_or_404(db, session, form_id)
    if not form_service.can_set_status(session.role, body.status):
        raise HTTPException(status_code=403, detail=FORBIDDEN_STATUS_CHANGE)
    if form.status == body.status:
        raise HTTPException(status_code=400, detail="Status is already set to that value")

    previous = form.status
    form = form_service.change_status(db, kv, form, body.status)
    logger.info("Form %s status %s -> %s", form.id, previous, form.status)
    return ApiResponse(data=_form_read(form), message=f"Form status updated to {form.status}")


@router.delete("/{form_id}", response_model=ApiResponse[None])
def delete_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    kv=Depends(get_kv_store),
    session: WorkspaceSession = Depends(require_roles(ROLES_CAN_DELETE_FORMS)),
):
    form = _get_form_or_404(db, session, form_id)
    if form.status == FormStatus.PUBLISHED.value:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete a published form. Archive it first.",
        )

    form_service.soft_delete_form(db, kv, form)
    return ApiResponse(message="Form deleted successfully")


@router.post("/{form_id}/duplicate", response_model=ApiResponse[FormRead], status_code=201)
def duplicate_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    session: WorkspaceSession = Depends(require_roles(ROLES_CAN_EDIT_FORMS)),
):
    form = _get_form_or_404(db, session, form_id)
    copy = form_service.duplicate_form(db, form, session.user_id)
    return ApiResponse(data=_form_read(copy), message="Form duplicated successfully")


# =============================================================================
# Submissions (workspace members)
# =============================================================================

@router.get("/{form_id}/submissions", response_model=ApiResponse[SubmissionListData])
def list_form_submissions(
    form_id: UUID,
    date_from: int | None = Query(None, alias="dateFrom", ge=0, le=MAX_SORT_VALUE),
    date_to: int | None = Query(None, alias="dateTo", ge=0, le=MAX_SORT_VALUE),
    search: str | None = Query(None, max_length=200),
    pagination: CursorParams = Depends(get_cursor_params),
    db: Session = Depends(get_db),
    session: WorkspaceSession = Depends(require_workspace_member),
):
    """
    Page through a form's submissions, newest first.

    ``dateFrom``/``dateTo`` are inclusive epoch milliseconds. ``total`` is a
    display hint and may lag the pages under concurrent submissions.
    """
    _get_form_or_404(db, session, form_id)
    page = submission_service.list_submissions(
        db,
        form_id,
        limit=pagination.limit,
        cursor=pagination.cursor,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return ApiResponse(
        data=SubmissionListData(
            items=[_submission_read(s) for s in page.items],
            has_next_page=page.has_next_page,
            next_cursor=page.next_cursor,
            total=page.total or 0,
        )
    )


@router.get(
    "/{form_id}/submissions/{submission_id}",
    response_model=ApiResponse[SubmissionDetail],
)
def get_form_submission(
    form_id: UUID,
    submission_id: UUID,
    db: Session = Depends(get_db),
    session: WorkspaceSession = Depends(require_workspace_member),
):
    found = submission_service.get_submission(db, session.workspace_id, form_id, submission_id)
    if not found:
        raise HTTPException(status_code=404, detail="Submission not found")

    submission, form = found
    detail = SubmissionDetail(
        **_submission_read(submission).model_dump(),
        form_title=form.title,
    )
    return ApiResponse(data=detail)
