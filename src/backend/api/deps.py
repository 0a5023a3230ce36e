"""
Shared dependencies for API endpoints.

Includes:
- Access to the service container
- Caller address resolution
- Bearer token -> platform user resolution
- Admin-only guard
"""

from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.container import AppServices
from db.platform import PlatformError
from schemas.auth import AuthUser

logger = structlog.get_logger(__name__)

# Security schemes
security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)


def get_services(request: Request) -> AppServices:
    """The application's service container."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return services


def client_ip(request: Request) -> Optional[str]:
    """The caller's address, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


async def _resolve(services: AppServices, token: str) -> AuthUser:
    try:
        return await services.auth.resolve_user(token)
    except PlatformError as e:
        if e.is_transient:
            logger.error("session_lookup_failed", error=e.message)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            ) from e
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    services: AppServices = Depends(get_services),
) -> AuthUser:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 if the token is rejected by the platform.
    """
    return await _resolve(services, credentials.credentials)


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_optional)],
    services: AppServices = Depends(get_services),
) -> Optional[AuthUser]:
    """Resolve the caller when a token is present."""
    if credentials is None:
        return None
    return await _resolve(services, credentials.credentials)


async def get_current_admin_user(
    current_user: Annotated[AuthUser, Depends(get_current_user)],
) -> AuthUser:
    """Require an administrator."""
    if not current_user.is_admin:
        logger.warning("admin_access_denied", user_id=current_user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return current_user


def platform_http_error(error: PlatformError) -> HTTPException:
    """Client errors from the platform pass through; anything else is a 502."""
    if error.status_code and 400 <= error.status_code < 500:
        return HTTPException(status_code=error.status_code, detail=error.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.message or "Platform request failed")
