"""
Candidate-related Pydantic schemas.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CandidateBase(BaseModel):
    """Fields shared by create and update."""

    image_url: Optional[str] = None
    video_url: Optional[str] = None
    instagram_username: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("image_url", "video_url", "instagram_username", "bio")
    @classmethod
    def empty_as_null(cls, v: Optional[str]) -> Optional[str]:
        """Empty optional fields are stored as null."""
        return _blank_to_none(v)


class CandidateCreate(CandidateBase):
    """Schema for adding a candidate."""

    name: str = Field("", max_length=200)
    genre: str = Field("", max_length=100)

    def missing_required(self) -> bool:
        return not self.name.strip() or not self.genre.strip()

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["name"] = self.name.strip()
        row["genre"] = self.genre.strip()
        return row


class CandidateUpdate(CandidateCreate):
    """Schema for editing a candidate (all fields are written)."""


class CandidateResponse(BaseModel):
    """Candidate as shown to voters."""

    id: int
    name: str
    genre: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    instagram_username: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None
    vote_count: int = 0

    model_config = {"from_attributes": True}
