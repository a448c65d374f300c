"""Shared schema building blocks.

Every endpoint answers with the same envelope:

    {"success": true,  "data": ...}
    {"success": false, "error": "...", "code": "..."}

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for API schemas: camelCase aliases, accepts ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class ErrorResponse(CamelModel):
    """Failure envelope (produced by the error-handling middleware)."""

    success: bool = False
    error: str = Field(..., examples=["Project not found or access denied"])
    code: str = Field(..., examples=["NOT_FOUND"])


class PageInfo(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
