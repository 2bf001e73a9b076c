"""
LoveConnect — Store interfaces.

``ProfileStore`` is the boundary to the externally-owned profile records;
the core only reads profiles and appends to their like / match sets.
``ConversationStore`` persists matches, messages and last-message summaries.

Two backends implement both interfaces: ``app.stores.sql`` (PostgreSQL via
SQLAlchemy) and ``app.stores.memory`` (in-process, for development and
tests).
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Iterable, Literal
from uuid import UUID

from app.schemas.match import MatchRecord
from app.schemas.message import MessageRecord
from app.schemas.profile import Preferences, ProfileRecord

ProfileSet = Literal["likes", "super_likes", "matches"]
PROFILE_SETS: tuple[str, ...] = ("likes", "super_likes", "matches")


class MatchPairConflict(Exception):
    """A match for this unordered pair already exists."""


class ProfileStore(abc.ABC):

    @abc.abstractmethod
    async def find_by_id(self, profile_id: UUID) -> ProfileRecord | None: ...

    @abc.abstractmethod
    async def find_by_ids(self, profile_ids: Iterable[UUID]) -> dict[UUID, ProfileRecord]: ...

    @abc.abstractmethod
    async def append_to_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        """Add ``value`` to the profile's set; return False if already present."""

    @abc.abstractmethod
    async def has_in_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        """Read the set membership as currently committed."""

    @abc.abstractmethod
    async def get_preferences(self, profile_id: UUID) -> Preferences | None: ...

    @abc.abstractmethod
    async def set_preferences(self, profile_id: UUID, preferences: Preferences) -> bool: ...

    @abc.abstractmethod
    async def update_profile(self, profile_id: UUID, changes: dict) -> ProfileRecord | None: ...

    @abc.abstractmethod
    async def list_candidates(self, exclude_ids: Iterable[UUID]) -> list[ProfileRecord]: ...

    @abc.abstractmethod
    async def add(self, profile: ProfileRecord) -> ProfileRecord: ...


class ConversationStore(abc.ABC):

    @abc.abstractmethod
    async def get_match(self, match_id: UUID) -> MatchRecord | None: ...

    @abc.abstractmethod
    async def get_match_by_pair(self, user_x: UUID, user_y: UUID) -> MatchRecord | None: ...

    @abc.abstractmethod
    async def create_match(self, user_x: UUID, user_y: UUID) -> MatchRecord:
        """Insert an active match; raise ``MatchPairConflict`` if the pair exists."""

    @abc.abstractmethod
    async def list_matches_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[MatchRecord]:
        """Matches containing ``user_id``, most recently updated first."""

    @abc.abstractmethod
    async def set_match_active(self, match_id: UUID, active: bool) -> MatchRecord | None: ...

    @abc.abstractmethod
    async def insert_message(
        self,
        *,
        match_id: UUID,
        sender_id: UUID | None,
        receiver_id: UUID,
        text: str,
        is_system: bool,
        created_at: datetime,
    ) -> MessageRecord:
        """Persist with the next per-match ``seq``.

        Raises ``TransientStoreError`` when another writer claimed the same
        sequence number.
        """

    @abc.abstractmethod
    async def update_last_message(self, match_id: UUID, message: MessageRecord) -> bool:
        """Write the summary unless a newer message is already recorded."""

    @abc.abstractmethod
    async def mark_read(self, match_id: UUID, receiver_id: UUID) -> int:
        """Flag unread messages addressed to ``receiver_id``; return the count."""

    @abc.abstractmethod
    async def list_messages(self, match_id: UUID) -> list[MessageRecord]:
        """All messages of the match in ascending ``seq`` order."""
