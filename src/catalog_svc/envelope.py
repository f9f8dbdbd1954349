"""Response envelope and the camelCase base model for API payloads."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """API payloads are camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """``{"success": true, "data": ...}``; errors are rendered by the app's exception handler."""
    success: bool = True
    data: T | None = None
    message: str | None = None


class ErrorBody(BaseModel):
    kind: str
    message: str
    retryable: bool = False


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
