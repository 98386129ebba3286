"""
Pydantic schemas for the FastAPI service.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ActionResponse(BaseModel):
    """Successful action result, wrapped the way callable functions wrap it."""

    result: Any = None


class ErrorDetail(BaseModel):
    code: str
    status: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class ActionListResponse(BaseModel):
    actions: list[str]


class HealthResponse(BaseModel):
    status: str
