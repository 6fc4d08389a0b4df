"""Shared response envelope and camelCase base model."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input; serializes as camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope: ``{success, data, message}``."""
    success: bool = True
    data: T | None = None
    message: str | None = None

