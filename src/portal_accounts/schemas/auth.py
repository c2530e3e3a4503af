"""Pydantic schemas for registration, login, verification and recovery."""

from typing import Optional

from pydantic import BaseModel, Field

from portal_accounts.schemas.user import CAMEL, UserRead, UserSummary


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    username: Optional[str] = Field(None, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8)

    model_config = CAMEL


class RegisterResponse(MessageResponse):
    email_sent: bool = True

    model_config = CAMEL


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    success: bool = True
    user: UserRead
    token: str


class LocalIdentityRead(BaseModel):
    id: str
    email: str
    username: str


class MeResponse(BaseModel):
    success: bool = True
    user: LocalIdentityRead


class EmailRequest(BaseModel):
    email: str = Field(..., min_length=1)


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    access_token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)

    model_config = CAMEL


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(..., min_length=1)

    model_config = CAMEL


class GoogleLoginResponse(BaseModel):
    success: bool = True
    user: UserSummary
    token: str
    refresh_token: Optional[str] = None
    expires_at: int
    expires_in: int
    created: bool

    model_config = CAMEL
