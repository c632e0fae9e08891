"""Account request/response schemas.

Passwords are capped at 72 bytes' worth of characters: bcrypt ignores
anything beyond that and bcrypt>=5 rejects it outright.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from vozsegura.security.passwords import MAX_PASSWORD_BYTES


class AccountCreate(BaseModel):
    """Self-registration (reporter) or supervisor creation by the Owner-Admin."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)
    given_name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=30)


class AccountUpdate(BaseModel):
    """Owner-Admin edit. Status is limited to the administrator-controlled states."""

    given_name: str | None = Field(default=None, min_length=1, max_length=100)
    surname: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    status: Literal["active", "inactive"] | None = None


class AccountOut(BaseModel):
    """Account summary. PII is plain or masked depending on who is looking."""

    id: uuid.UUID
    email: str
    role: str
    status: str
    given_name: str | None
    surname: str | None
    phone: str | None
    failed_attempts: int
    locked_until: datetime | None
    last_login_at: datetime | None
    created_at: datetime
