"""Login and recovery request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from vozsegura.schemas.accounts import AccountOut
from vozsegura.security.passwords import MAX_PASSWORD_BYTES


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountOut


class IdentityVerifyRequest(BaseModel):
    email: EmailStr
    surname: str = Field(min_length=1, max_length=100)
    given_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=30)


class CodeRequest(BaseModel):
    email: EmailStr


class CodeRequestOut(BaseModel):
    message: str
    expires_in: int
    # Only populated outside production
    dev_code: str | None = None


class CodeVerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=1, max_length=12)


class ResetTokenOut(BaseModel):
    reset_token: str
    expires_in: int


class CompleteRecoveryRequest(BaseModel):
    email: EmailStr
    new_password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)
    reset_token: str = Field(min_length=1)
