"""
AI score schemas.
"""

from pydantic import BaseModel


class ScoreCriterion(BaseModel):
    """A scoring criterion with its weight in percent."""

    name: str
    description: str
    weight: int


class AIScoreEntry(BaseModel):
    """Score for one candidate."""

    candidate_id: int
    score: int
    verified_emails: int
    spam_emails: int
    non_gmail_count: int
    total_votes: int

    model_config = {"from_attributes": True}


class AIScoresResponse(BaseModel):
    """AI scores keyed by candidate id."""

    scores: dict[int, AIScoreEntry]
