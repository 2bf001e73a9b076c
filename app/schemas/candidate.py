from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

# "canonical" is the weighted score, "quick" the fallback tier and "auto"
# picks "quick" when no profile in the page carries enrichment data.
ScoringTier = Literal["canonical", "quick", "auto"]


class CandidateQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    category: Optional[str] = None
    interests: list[str] = []
    relationship_type: Optional[str] = None
    min_score: float = Field(0.0, ge=0, le=100)
    scoring: ScoringTier = "canonical"


class ScoredCandidate(BaseModel):
    id: UUID
    display_name: str
    age: int
    gender: str
    interested_in: str
    relationship_type: str
    looking_for: str
    interests: list[str]
    common_interests: list[str]
    compatibility_score: int
    distance: Optional[int] = None
    activity_score: int
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


class CandidatePage(BaseModel):
    users: list[ScoredCandidate]
    total: int
    page: int
    limit: int
    total_pages: int
    scoring: Literal["canonical", "quick"] = "canonical"
