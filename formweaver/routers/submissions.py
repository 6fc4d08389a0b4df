"""Public form submission endpoint (no auth, rate limited by client IP)."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from formweaver.core.deps import get_db
from formweaver.core.rate_limit import (
    FORM_SUBMISSION_RATE_LIMIT,
    RateLimitResult,
    enforce_rate_limit,
    get_client_ip,
    rate_limit_headers,
)
from formweaver.core.structured_logging import mask_ip
from formweaver.schemas.common import ApiResponse
from formweaver.schemas.forms import SubmissionCreated
from formweaver.services import submission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("/{form_id}/submit", response_model=ApiResponse[SubmissionCreated], status_code=201)
def submit_form(
    form_id: UUID,
    request: Request,
    data: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    limit: RateLimitResult = Depends(enforce_rate_limit("form-submit", FORM_SUBMISSION_RATE_LIMIT)),
):
    """
    Accept a submission for a published form.

    The body is the answer object keyed by field id. Required fields from the
    form schema must be present and non-blank.
    """
    form = submission_service.get_live_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found", headers=rate_limit_headers(limit))
    if not submission_service.is_accepting_submissions(form):
        raise HTTPException(
            status_code=403,
            detail="Form is not published and cannot accept submissions",
            headers=rate_limit_headers(limit),
        )

    errors = submission_service.missing_required_fields(form, data)
    if errors:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Validation failed", "details": errors},
            headers=rate_limit_headers(limit),
        )

    client_ip = get_client_ip(request)
    submission = submission_service.create_submission(
        db,
        form,
        data,
        ip_address=client_ip,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
    logger.info(
        "Submission %s accepted for form %s from %s",
        submission.id,
        form.id,
        mask_ip(client_ip) or "unknown",
    )

    return ApiResponse(
        data=SubmissionCreated(
            id=submission.id,
            form_id=form.id,
            workspace_id=form.workspace_id,
            submitted_at=submission.submitted_at,
        ),
        message="Form submitted successfully",
    )
