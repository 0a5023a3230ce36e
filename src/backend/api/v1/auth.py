"""
Authentication endpoints.

Sessions are issued by the hosted platform. ``/token`` relays the password
grant verbatim so the browser never needs the platform's address.
"""

from typing import Annotated, Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from api.deps import client_ip, get_current_user, get_services, platform_http_error, security
from core.container import AppServices
from db.platform import PlatformError
from schemas.auth import (
    AuthUser,
    CurrentUserResponse,
    MessageResponse,
    ProfileResponse,
    ResetPasswordRequest,
    SignUpRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/token")
async def token(
    request: Request,
    payload: Annotated[Optional[dict[str, Any]], Body()] = None,
    services: AppServices = Depends(get_services),
) -> JSONResponse:
    """
    Exchange email and password for a platform session.

    The platform's status code and body are passed through unchanged.
    """
    payload = payload or {}
    email = payload.get("email")
    password = payload.get("password")
    if not email or not password:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Email and password are required"},
        )

    try:
        response = await services.auth.sign_in(email, password, ip_address=client_ip(request))
        content = response.json()
    except (PlatformError, ValueError) as e:
        logger.error("auth_proxy_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Authentication failed"},
        )

    return JSONResponse(status_code=response.status_code, content=content)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    request_data: SignUpRequest,
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Register a new account; the platform sends the confirmation email."""
    try:
        return await services.auth.sign_up(
            request_data.email.strip().lower(),
            request_data.password,
            request_data.redirect_to,
        )
    except PlatformError as e:
        raise platform_http_error(e) from e


@router.post("/signout", response_model=MessageResponse)
async def signout(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    services: AppServices = Depends(get_services),
) -> MessageResponse:
    """Revoke the caller's session."""
    await services.auth.sign_out(credentials.credentials)
    return MessageResponse(message="Signed out")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request_data: ResetPasswordRequest,
    services: AppServices = Depends(get_services),
) -> MessageResponse:
    """Send a password reset email."""
    error = await services.auth.reset_password(request_data.email.strip().lower(), request_data.redirect_to)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    return MessageResponse(message="Password reset email sent")


@router.get("/me", response_model=CurrentUserResponse)
async def me(
    current_user: Annotated[AuthUser, Depends(get_current_user)],
    services: AppServices = Depends(get_services),
) -> CurrentUserResponse:
    """The caller's identity, profile and admin flag."""
    profile = await services.auth.fetch_profile(current_user.id, current_user.access_token)
    return CurrentUserResponse(
        id=current_user.id,
        email=current_user.email,
        is_admin=current_user.is_admin,
        profile=ProfileResponse(
            id=profile.id,
            email=profile.email or current_user.email,
            is_admin=profile.is_admin,
            has_voted=profile.has_voted,
        )
        if profile
        else None,
    )
