"""Realtime notification hooks used by the matching and conversation services."""

from __future__ import annotations

from uuid import UUID

from app.schemas.match import MatchRecord
from app.schemas.message import MessageRecord
from app.schemas.profile import ProfileRecord


class MatchNotifier:
    """No-op notifier; the realtime broker overrides every hook."""

    async def match_created(self, match: MatchRecord, profiles: dict[UUID, ProfileRecord]) -> None:
        return None

    async def super_like_received(self, from_profile: ProfileRecord, to_user_id: UUID) -> None:
        return None

    async def message_created(self, message: MessageRecord) -> None:
        return None
