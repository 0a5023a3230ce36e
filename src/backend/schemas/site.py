"""
Site settings and banner schemas.
"""

from pydantic import BaseModel, Field


class VotingStatus(BaseModel):
    """Whether voting has been closed."""

    voting_ended: bool


class SettingUpdateResult(BaseModel):
    """Outcome of a site setting update."""

    success: bool
    stored_remotely: bool
    error: str | None = None


class BannerUpdate(BaseModel):
    """New banner URL."""

    url: str


class BannersResponse(BaseModel):
    """All banner URLs by banner key."""

    login1: str
    login2: str
    register_banner: str = Field(alias="register")
