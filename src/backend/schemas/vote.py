"""
Vote-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VoteCreate(BaseModel):
    """Schema for casting a vote."""

    candidate_id: int


class VoteRecord(BaseModel):
    """A vote as returned to its owner."""

    id: int
    candidate_id: int
    transaction_id: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProfileSyncStatus(BaseModel):
    """Outcome of the profile has-voted update that follows a vote write."""

    succeeded: bool
    attempts: int
    error: Optional[str] = None


class VoteResponse(BaseModel):
    """Response after casting or cancelling a vote."""

    success: bool
    message: str
    reason: Optional[str] = None
    vote: Optional[VoteRecord] = None
    profile_sync: Optional[ProfileSyncStatus] = None


class VoteStatus(BaseModel):
    """The caller's current vote, if any."""

    has_voted: bool
    vote: Optional[VoteRecord] = None
    last_vote_cancelled: Optional[int] = Field(
        None, description="Candidate id of the caller's most recently cancelled vote"
    )


class CandidateStanding(BaseModel):
    """One row of the results table."""

    rank: int
    candidate_id: int
    name: str
    genre: str
    votes: int
    percentage: float


class VoteTallyResponse(BaseModel):
    """Current vote counts and rankings."""

    counts: dict[int, int]
    total_votes: int
    rankings: list[CandidateStanding]
    leader: Optional[str] = None
    error: Optional[str] = None
