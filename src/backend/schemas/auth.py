"""
Authentication-related Pydantic schemas.

Sessions are issued by the hosted platform; the API only relays credentials
and resolves access tokens to users.
"""

from typing import Optional

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """An authenticated caller, resolved from a platform access token."""

    id: str
    email: str = ""
    access_token: str = Field(..., repr=False)
    is_admin: bool = False


class SignUpRequest(BaseModel):
    """Request to register an account."""

    email: str
    password: str = Field(..., min_length=6)
    redirect_to: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    """Request a password reset email."""

    email: str
    redirect_to: Optional[str] = None


class ProfileResponse(BaseModel):
    """Profile fields exposed to the caller."""

    id: str
    email: str
    is_admin: bool
    has_voted: bool


class CurrentUserResponse(BaseModel):
    """The caller's identity, profile and admin flag."""

    id: str
    email: str
    is_admin: bool
    profile: Optional[ProfileResponse] = None


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str
