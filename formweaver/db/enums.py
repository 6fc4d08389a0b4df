"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    Workspace member roles with decreasing privilege.

    - OWNER: creator of the workspace
    - ADMIN: publish/archive/delete forms
    - EDITOR: create and edit drafts
    - VIEWER: read-only access to forms and submissions
    """
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class FormStatus(str, Enum):
    """Lifecycle of a form. Only published forms accept submissions."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class PlanType(str, Enum):
    FREE = "free"
    PREPAID = "prepaid"
    PRO = "pro"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


# =============================================================================
# Permission sets
# =============================================================================

ROLES_CAN_EDIT_FORMS = {Role.OWNER, Role.ADMIN, Role.EDITOR}
ROLES_CAN_PUBLISH = {Role.OWNER, Role.ADMIN}
ROLES_CAN_DELETE_FORMS = {Role.OWNER, Role.ADMIN}
