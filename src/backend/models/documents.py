"""
Row models for the tables stored on the hosted platform.

These Pydantic models mirror the rows returned by the platform's REST layer.
Unknown columns are kept so that schema additions on the platform do not break
reads.

Tables:
- candidates: DJs that can be voted for
- votes: one row per cast ballot
- profiles: account record per voter (admin and has-voted flags)
- site_settings: key/value site configuration
- profiles_ip: last known address per voter
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

# ============================================================================
# Table names
# ============================================================================

CANDIDATES_TABLE = "candidates"
VOTES_TABLE = "votes"
PROFILES_TABLE = "profiles"
SITE_SETTINGS_TABLE = "site_settings"
PROFILES_IP_TABLE = "profiles_ip"


class PlatformRow(BaseModel):
    """Base class for platform rows."""

    # Allow extra columns the platform may return
    model_config = ConfigDict(extra="allow")


# ============================================================================
# Candidate
# ============================================================================


class CandidateRow(PlatformRow):
    """A DJ taking part in the competition."""

    id: int
    name: str
    genre: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    instagram_username: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None


# ============================================================================
# Vote
# ============================================================================


class VoteRow(PlatformRow):
    """
    A single cast ballot.

    One voter holds at most one vote at a time; this is checked by the
    application before insert, not by a table constraint.
    """

    id: int
    user_id: str
    candidate_id: int
    transaction_id: str
    created_at: Optional[datetime] = None
    ip_address: Optional[str] = None


# ============================================================================
# Profile
# ============================================================================


class ProfileRow(PlatformRow):
    """Voter account record."""

    id: str
    email: str = ""
    is_admin: bool = False
    has_voted: bool = False
    created_at: Optional[datetime] = None


class SiteSettingRow(PlatformRow):
    """Key/value site setting."""

    key: str
    value: str


class ProfileIpRow(PlatformRow):
    """Last known network address for a voter."""

    user_id: str
    ip_address: str
    last_login: Optional[datetime] = None
