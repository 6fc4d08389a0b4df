"""Schemas for forms and submissions."""

from typing import Any, Literal
from uuid import UUID

from pydantic import Field, SerializerFunctionWrapHandler, model_serializer, model_validator

from formweaver.schemas.common import CamelModel


FieldType = Literal[
    "text",
    "email",
    "number",
    "textarea",
    "select",
    "radio",
    "checkbox",
    "multiselect",
    "date",
    "time",
    "datetime",
    "file",
    "url",
    "phone",
    "rating",
    "signature",
]

FormStatusValue = Literal["draft", "published", "archived"]


class FormField(CamelModel):
    id: str = Field(..., min_length=1)
    type: FieldType
    label: str = Field(..., min_length=1, max_length=100)
    required: bool | None = None
    validation: dict[str, Any] | None = None
    properties: dict[str, Any] | None = None


# =============================================================================
# Form requests
# =============================================================================

class FormCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    form_schema: list[FormField] = Field(..., min_length=1, alias="schema")
    status: Literal["draft", "published"] = "draft"


class FormUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    form_schema: list[FormField] | None = Field(None, min_length=1, alias="schema")
    status: FormStatusValue | None = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "FormUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class FormStatusUpdate(CamelModel):
    status: FormStatusValue


# =============================================================================
# Form responses
# =============================================================================

class FormRead(CamelModel):
    id: UUID
    workspace_id: UUID
    title: str
    description: str | None
    form_schema: list[dict[str, Any]] = Field(alias="schema")
    status: str
    version: int
    created_by: UUID
    created_at: int
    updated_at: int


class FormDetail(FormRead):
    cached: bool = False


class CursorPageData(CamelModel):
    """Page envelope; ``nextCursor`` is present only when there is a next page."""
    has_next_page: bool
    next_cursor: str | None = None

    @model_serializer(mode="wrap")
    def _omit_empty_cursor(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        if self.next_cursor is None:
            data.pop("nextCursor", None)
            data.pop("next_cursor", None)
        return data


class FormListData(CursorPageData):
    items: list[FormRead]


# =============================================================================
# Submissions
# =============================================================================

class SubmissionCreated(CamelModel):
    id: UUID
    form_id: UUID
    workspace_id: UUID
    submitted_at: int


class SubmissionRead(CamelModel):
    id: UUID
    form_id: UUID
    data: dict[str, Any]
    ip_address: str | None
    user_agent: str | None
    referrer: str | None
    submitted_at: int


class SubmissionDetail(SubmissionRead):
    form_title: str


class SubmissionListData(CursorPageData):
    items: list[SubmissionRead]
    total: int
