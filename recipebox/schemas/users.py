"""User schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Credential sign-up request."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str


class ProfileUpdate(BaseModel):
    """Schema for updating profile name fields."""

    display_name: str | None = Field(None, min_length=1)
    first_name: str | None = None
    last_name: str | None = None


class EmailChange(BaseModel):
    """New email address for a credential account."""

    email: str


class PasswordChange(BaseModel):
    """New password for a credential account."""

    password: str


class AvatarUriChange(BaseModel):
    """Point the avatar at an already stored blob."""

    avatar_uri: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Identity record as exposed to its owner. Never includes the hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar_uri: str | None = None
    provider: str
    role: str
    verified: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: datetime | None = None


class AvatarChangeResponse(BaseModel):
    """Avatar replacement result, degraded when the old blob survived."""

    avatar_uri: str | None
    old_avatar_removed: bool
    degraded: bool = False
    warning: str | None = None
