"""Repository modules for platform access."""

from repositories.candidate_repository import CandidateRepository
from repositories.profile_repository import ProfileRepository
from repositories.site_settings_repository import SiteSettingsRepository
from repositories.vote_repository import VotePages, VoteRepository

__all__ = [
    "CandidateRepository",
    "VoteRepository",
    "VotePages",
    "ProfileRepository",
    "SiteSettingsRepository",
]
