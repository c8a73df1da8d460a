"""Authentication schemas."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class CredentialLoginRequest(BaseModel):
    """Email/password sign-in request."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProviderLoginRequest(BaseModel):
    """Identity provider token sign-in request."""

    id_token: str = Field(..., description="Firebase ID token from a Google or GitHub sign-in")


class ProviderAssertion(BaseModel):
    """Verified external identity, trusted verbatim."""

    provider: str
    email: str
    display_name: str | None = None
    avatar_url: str | None = None
    provider_id: str | None = None


class SessionView(BaseModel):
    """Per-request projection of an identity record."""

    id: UUID
    display_name: str
    role: Literal["user", "admin"]
    provider: Literal["credential", "google", "github", "generated"]


class LoginResponse(BaseModel):
    """Login response with tokens and the session view."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    session: SessionView
