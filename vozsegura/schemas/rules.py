"""Assignment rule request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from vozsegura.models.enums import CaseCategory, CasePriority


class RuleCreate(BaseModel):
    label: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    category: CaseCategory
    priority: CasePriority = CasePriority.LOW
    supervisor_id: uuid.UUID
    active: bool = True


class RuleUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""

    label: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    category: CaseCategory | None = None
    priority: CasePriority | None = None
    supervisor_id: uuid.UUID | None = None
    active: bool | None = None


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    label: str
    description: str | None
    category: str
    priority: int
    supervisor_id: uuid.UUID | None
    active: bool
    created_at: datetime
    updated_at: datetime
