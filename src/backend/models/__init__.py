"""Platform row models module."""

from models.documents import CandidateRow, ProfileIpRow, ProfileRow, SiteSettingRow, VoteRow

__all__ = [
    "CandidateRow",
    "VoteRow",
    "ProfileRow",
    "SiteSettingRow",
    "ProfileIpRow",
]
