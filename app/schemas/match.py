from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.schemas.profile import PublicProfile


def pair_key(user_x: UUID, user_y: UUID) -> str:
    """Order-independent key for an unordered user pair."""
    a, b = sorted((user_x, user_y))
    return f"{a}:{b}"


class LastMessage(BaseModel):
    text: str
    sender_id: Optional[UUID] = None
    timestamp: datetime
    seq: int = 0

    model_config = {"from_attributes": True}


class MatchRecord(BaseModel):
    id: UUID
    user_a_id: UUID
    user_b_id: UUID
    is_active: bool = True
    last_message: Optional[LastMessage] = None
    created_at: datetime
    updated_at: datetime

    @property
    def members(self) -> tuple[UUID, UUID]:
        return (self.user_a_id, self.user_b_id)

    def has_member(self, user_id: UUID) -> bool:
        return user_id in self.members

    def other_member(self, user_id: UUID) -> UUID:
        if user_id == self.user_a_id:
            return self.user_b_id
        if user_id == self.user_b_id:
            return self.user_a_id
        raise ValueError(f"{user_id} is not a member of match {self.id}")


class LikeResponse(BaseModel):
    is_match: bool
    match: Optional[MatchRecord] = None
    message: str


class MatchListItem(BaseModel):
    match_id: UUID
    user: PublicProfile
    last_message: Optional[LastMessage] = None
    matched_at: datetime
    updated_at: datetime
