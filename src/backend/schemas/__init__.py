"""Schemas module initialization."""

from schemas.auth import AuthUser, CurrentUserResponse, SignUpRequest
from schemas.candidate import CandidateCreate, CandidateResponse, CandidateUpdate
from schemas.score import AIScoreEntry, AIScoresResponse, ScoreCriterion
from schemas.site import BannersResponse, VotingStatus
from schemas.vote import VoteCreate, VoteResponse, VoteStatus, VoteTallyResponse

__all__ = [
    "AuthUser",
    "CurrentUserResponse",
    "SignUpRequest",
    "CandidateCreate",
    "CandidateUpdate",
    "CandidateResponse",
    "VoteCreate",
    "VoteResponse",
    "VoteStatus",
    "VoteTallyResponse",
    "AIScoreEntry",
    "AIScoresResponse",
    "ScoreCriterion",
    "VotingStatus",
    "BannersResponse",
]
