from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

INTEREST_VOCABULARY: tuple[str, ...] = (
    "coffee",
    "clubbing",
    "travel",
    "movies",
    "gaming",
    "serious-relationship",
    "fitness",
    "music",
    "food",
)
MAX_INTERESTS = 4

Gender = Literal["male", "female", "non-binary", "other"]
InterestedIn = Literal["men", "women", "everyone"]
RelationshipType = Literal[
    "casual", "serious", "long-term", "friendship", "marriage", "not-sure", ""
]
LookingFor = Literal[
    "serious", "casual", "friends", "networking", "marriage", "friendship", "long-term", ""
]


def validate_interests(values: list[str]) -> list[str]:
    """Reject unknown or repeated interests and lists longer than four."""
    unknown = [v for v in values if v not in INTEREST_VOCABULARY]
    if unknown:
        raise ValueError(f"Unknown interests: {', '.join(unknown)}")
    if len(set(values)) != len(values):
        raise ValueError("Interests must not repeat")
    if len(values) > MAX_INTERESTS:
        raise ValueError(f"At most {MAX_INTERESTS} interests may be selected")
    return values


class Preferences(BaseModel):
    age_min: int = 18
    age_max: int = 100
    distance: float = 50.0
    relationship_type: str = ""

    model_config = {"from_attributes": True}


class ProfileRecord(BaseModel):
    """A profile as read from the Profile Store."""

    id: UUID
    display_name: str
    age: int
    gender: str
    interested_in: str = "everyone"
    relationship_type: str = ""
    looking_for: str = ""
    interests: list[str] = []
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    activity_score: int = 0
    profile_completeness: int = 0
    is_premium: bool = False
    preferences: Preferences = Preferences()
    likes: set[UUID] = set()
    super_likes: set[UUID] = set()
    matches: set[UUID] = set()

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def public(self) -> "PublicProfile":
        return PublicProfile(
            id=self.id,
            display_name=self.display_name,
            age=self.age,
            gender=self.gender,
            interests=list(self.interests),
            avatar_url=self.avatar_url,
        )


class PublicProfile(BaseModel):
    id: UUID
    display_name: str
    age: int
    gender: str
    interests: list[str] = []
    avatar_url: Optional[str] = None


class PreferencesUpdate(BaseModel):
    """Every updatable preference; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    age_min: int = Field(18, ge=18, le=100)
    age_max: int = Field(100, ge=18, le=100)
    distance: float = Field(50.0, gt=0, le=20000)
    relationship_type: RelationshipType = ""

    @model_validator(mode="after")
    def _age_range_ordered(self) -> "PreferencesUpdate":
        if self.age_min > self.age_max:
            raise ValueError("age_min must not exceed age_max")
        return self


class ProfileUpdate(BaseModel):
    """Every updatable profile field; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    display_name: Optional[str] = Field(None, min_length=1, max_length=50)
    age: Optional[int] = Field(None, ge=18, le=100)
    gender: Optional[Gender] = None
    interested_in: Optional[InterestedIn] = None
    relationship_type: Optional[RelationshipType] = None
    looking_for: Optional[LookingFor] = None
    interests: Optional[list[str]] = None
    bio: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("interests")
    @classmethod
    def _known_interests(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        return validate_interests(v)
