"""Audit trail schemas — the entry pushed by every component and the query API."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from vozsegura.models.enums import AuditAction


class AuditContext(BaseModel):
    """Client metadata from the transport layer, recorded verbatim."""

    ip_address: str | None = None
    user_agent: str | None = None

    model_config = {"frozen": True}


class AuditEntry(BaseModel):
    """One security-relevant action. Immutable once created."""

    action: AuditAction
    actor_id: uuid.UUID | None = None
    resource_table: str | None = None
    resource_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    success: bool = True

    model_config = {"frozen": True}


class AuditFilters(BaseModel):
    """Query filters for the audit trail. All optional except paging."""

    actor_id: uuid.UUID | None = None
    action: AuditAction | None = None
    resource_table: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)


class AuditEntryOut(BaseModel):
    """Audit row as returned by the query endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    actor_id: uuid.UUID | None
    action: str
    resource_table: str | None
    resource_id: str | None
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    success: bool
    created_at: datetime


class PageMeta(BaseModel):
    limit: int
    offset: int
    count: int
    total: int


class AuditPageOut(BaseModel):
    success: bool = True
    data: list[AuditEntryOut]
    meta: PageMeta
