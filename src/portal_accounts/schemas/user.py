"""Pydantic schemas for users and profiles.

Learn: Pydantic v2 models validate request/response data. JSON keys are
camelCase (fullName, avatarUrl) to match the web frontend, while Python
attributes stay snake_case — alias_generator=to_camel does the mapping
and populate_by_name lets us build models from ORM rows.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class UserRead(BaseModel):
    """A user as returned to clients. Never includes the password hash."""

    id: uuid.UUID
    full_name: str
    username: str
    email: str
    avatar_url: Optional[str] = None
    email_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = {**CAMEL, "from_attributes": True}


class UserSummary(BaseModel):
    name: str
    email: str
    username: str
    avatar_url: Optional[str] = None
    token: str

    model_config = CAMEL


class ProfileRead(BaseModel):
    full_name: str
    email: str
    username: str
    avatar_url: Optional[str] = None
    bio: str = ""
    city: str = ""

    model_config = CAMEL

    @classmethod
    def from_user(cls, user) -> "ProfileRead":
        return cls(
            full_name=user.full_name,
            email=user.email,
            username=user.username,
            avatar_url=user.avatar_url,
            bio=user.bio or "",
            city=user.city or "",
        )


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    bio: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)

    model_config = CAMEL


class ProfileResponse(BaseModel):
    success: bool = True
    profile: ProfileRead


class UsernameUpdate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)


class AdminUserResponse(BaseModel):
    success: bool = True
    user: UserRead
