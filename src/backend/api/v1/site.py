"""
Site settings endpoints: voting status, banners and config reload.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_admin_user, get_services
from core.container import AppServices
from schemas.auth import AuthUser
from schemas.site import BannersResponse, BannerUpdate, SettingUpdateResult, VotingStatus
from services.site_settings_service import SiteSettingsService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/voting-status", response_model=VotingStatus)
async def get_voting_status(services: AppServices = Depends(get_services)) -> VotingStatus:
    """Whether voting has ended."""
    return VotingStatus(voting_ended=await services.sync_voting_status())


@router.put("/voting-status", response_model=SettingUpdateResult)
async def set_voting_status(
    update: VotingStatus,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> SettingUpdateResult:
    """Open or close voting. The new state applies to the next vote."""
    site_settings = SiteSettingsService(services.platform, services.store, token=admin.access_token)
    result = await site_settings.set_voting_ended(update.voting_ended)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)

    services.reload_config()
    logger.info("voting_status_changed", voting_ended=update.voting_ended, admin_id=admin.id)
    return SettingUpdateResult(success=True, stored_remotely=result.stored_remotely, error=result.error)


@router.get("/banners", response_model=BannersResponse)
async def get_banners(services: AppServices = Depends(get_services)) -> BannersResponse:
    """Current banner URLs."""
    return BannersResponse(**services.banners.get_all_banners())


@router.put("/banners/{banner_key}", response_model=BannersResponse)
async def set_banner(
    banner_key: str,
    update: BannerUpdate,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> BannersResponse:
    """Replace one banner's URL."""
    try:
        services.banners.set_banner_url(banner_key, update.url)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    logger.info("banner_updated", banner=banner_key, admin_id=admin.id)
    return BannersResponse(**services.banners.get_all_banners())


@router.delete("/banners/{banner_key}", response_model=BannersResponse)
async def clear_banner(
    banner_key: str,
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> BannersResponse:
    """Reset one banner to its default."""
    try:
        services.banners.clear_banner_url(banner_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    logger.info("banner_cleared", banner=banner_key, admin_id=admin.id)
    return BannersResponse(**services.banners.get_all_banners())


@router.delete("/banners", response_model=BannersResponse)
async def clear_banners(
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> BannersResponse:
    """Reset every banner."""
    services.banners.clear_all_banners()
    logger.info("banners_cleared", admin_id=admin.id)
    return BannersResponse(**services.banners.get_all_banners())


@router.post("/reload-config")
async def reload_config(
    admin: Annotated[AuthUser, Depends(get_current_admin_user)],
    services: AppServices = Depends(get_services),
) -> dict[str, Any]:
    """Re-read environment settings and the local store."""
    config = services.reload_config()
    logger.info("config_reload_requested", admin_id=admin.id)
    return config.model_dump()
