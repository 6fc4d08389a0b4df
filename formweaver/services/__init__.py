"""Service layer modules."""

from formweaver.services.auth_service import (
    authenticate,
    get_user_by_email,
    signup,
)

# Import service modules (not individual functions) for cleaner access
from formweaver.services import session_service
from formweaver.services import form_service
from formweaver.services import submission_service

__all__ = [
    # Auth service
    "authenticate",
    "get_user_by_email",
    "signup",
    # Service modules
    "session_service",
    "form_service",
    "submission_service",
]
