"""Pydantic schemas for API request/response models."""

from formweaver.schemas.common import ApiResponse, CamelModel
from formweaver.schemas.auth import (
    AuthContext,
    AuthData,
    LoginRequest,
    SignupRequest,
    UserRead,
    WorkspaceRead,
    WorkspaceSession,
)
from formweaver.schemas.forms import (
    FormCreate,
    FormDetail,
    FormListData,
    FormRead,
    FormUpdate,
    SubmissionCreated,
    SubmissionListData,
    SubmissionRead,
)

__all__ = [
    # Envelope
    "ApiResponse",
    "CamelModel",
    # Auth
    "AuthContext",
    "AuthData",
    "LoginRequest",
    "SignupRequest",
    "UserRead",
    "WorkspaceRead",
    "WorkspaceSession",
    # Forms
    "FormCreate",
    "FormDetail",
    "FormListData",
    "FormRead",
    "FormUpdate",
    # Submissions
    "SubmissionCreated",
    "SubmissionListData",
    "SubmissionRead",
]
