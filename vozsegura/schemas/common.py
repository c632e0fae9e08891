"""Response envelope shared by the JSON API."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """{"success": true, "data": ...}. Errors use the shape in api/errors.py."""

    success: bool = True
    message: str | None = None
    data: T | None = None
