"""Case intake schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from vozsegura.models.enums import CaseCategory, CasePriority


class CaseCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=10_000)
    location: str | None = Field(default=None, max_length=200)
    category: CaseCategory
    priority: CasePriority = CasePriority.LOW


class CaseReceipt(BaseModel):
    """What the reporter gets back: the code to follow up, never the handler."""

    model_config = ConfigDict(from_attributes=True)

    anonymous_code: str
    status: str
    created_at: datetime


class ReassignOut(BaseModel):
    assigned: int
    case_ids: list[uuid.UUID]
