"""API routers."""

from formweaver.routers.auth import router as auth_router
from formweaver.routers.forms import router as forms_router
from formweaver.routers.submissions import router as submissions_router

__all__ = [
    "auth_router",
    "forms_router",
    "submissions_router",
]
