"""
LoveConnect — In-process store backend.

Holds every record in dictionaries guarded by a single ``asyncio.Lock``.
Records are copied on the way in and out so callers can never mutate
stored state behind the store's back.  Used for local development
(``STORE_BACKEND=memory``) and by the test-suite.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

import structlog

from app.errors import TransientStoreError
from app.schemas.match import LastMessage, MatchRecord, pair_key
from app.schemas.message import MessageRecord
from app.schemas.profile import Preferences, ProfileRecord
from app.stores.base import (
    PROFILE_SETS,
    ConversationStore,
    MatchPairConflict,
    ProfileSet,
    ProfileStore,
)

logger = structlog.get_logger("loveconnect.stores.memory")


def _copy_profile(profile: ProfileRecord) -> ProfileRecord:
    return profile.model_copy(deep=True)


class InMemoryProfileStore(ProfileStore):

    def __init__(self) -> None:
        self._profiles: dict[UUID, ProfileRecord] = {}
        self._lock = asyncio.Lock()

    async def add(self, profile: ProfileRecord) -> ProfileRecord:
        async with self._lock:
            self._profiles[profile.id] = _copy_profile(profile)
        logger.debug("profile_added", profile_id=str(profile.id))
        return _copy_profile(profile)

    async def find_by_id(self, profile_id: UUID) -> ProfileRecord | None:
        async with self._lock:
            profile = self._profiles.get(profile_id)
            return _copy_profile(profile) if profile is not None else None

    async def find_by_ids(self, profile_ids: Iterable[UUID]) -> dict[UUID, ProfileRecord]:
        async with self._lock:
            return {
                pid: _copy_profile(self._profiles[pid])
                for pid in set(profile_ids)
                if pid in self._profiles
            }

    async def append_to_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        if field not in PROFILE_SETS:
            raise ValueError(f"Unknown profile set {field!r}")
        async with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return False
            members: set[UUID] = getattr(profile, field)
            if value in members:
                return False
            members.add(value)
            return True

    async def has_in_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        async with self._lock:
            profile = self._profiles.get(profile_id)
            return profile is not None and value in getattr(profile, field)

    async def get_preferences(self, profile_id: UUID) -> Preferences | None:
        async with self._lock:
            profile = self._profiles.get(profile_id)
            return profile.preferences.model_copy() if profile is not None else None

    async def set_preferences(self, profile_id: UUID, preferences: Preferences) -> bool:
        async with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return False
            profile.preferences = preferences.model_copy()
            return True

    async def update_profile(self, profile_id: UUID, changes: dict) -> ProfileRecord | None:
        async with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return None
            updated = profile.model_copy(update=changes, deep=True)
            self._profiles[profile_id] = updated
            return _copy_profile(updated)

    async def list_candidates(self, exclude_ids: Iterable[UUID]) -> list[ProfileRecord]:
        excluded = set(exclude_ids)
        async with self._lock:
            return [
                _copy_profile(p)
                for pid, p in self._profiles.items()
                if pid not in excluded
            ]


class InMemoryConversationStore(ConversationStore):

    def __init__(self) -> None:
        self._matches: dict[UUID, MatchRecord] = {}
        self._pairs: dict[str, UUID] = {}
        self._messages: dict[UUID, list[MessageRecord]] = {}
        self._lock = asyncio.Lock()

    async def get_match(self, match_id: UUID) -> MatchRecord | None:
        async with self._lock:
            match = self._matches.get(match_id)
            return match.model_copy(deep=True) if match is not None else None

    async def get_match_by_pair(self, user_x: UUID, user_y: UUID) -> MatchRecord | None:
        async with self._lock:
            match_id = self._pairs.get(pair_key(user_x, user_y))
            if match_id is None:
                return None
            return self._matches[match_id].model_copy(deep=True)

    async def create_match(self, user_x: UUID, user_y: UUID) -> MatchRecord:
        if user_x == user_y:
            raise ValueError("A match needs two distinct users")
        key = pair_key(user_x, user_y)
        user_a, user_b = sorted((user_x, user_y))
        now = datetime.now(timezone.utc)
        async with self._lock:
            if key in self._pairs:
                raise MatchPairConflict(key)
            match = MatchRecord(
                id=uuid.uuid4(),
                user_a_id=user_a,
                user_b_id=user_b,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self._matches[match.id] = match
            self._pairs[key] = match.id
            self._messages[match.id] = []
            return match.model_copy(deep=True)

    async def list_matches_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[MatchRecord]:
        async with self._lock:
            matches = [
                m.model_copy(deep=True)
                for m in self._matches.values()
                if m.has_member(user_id) and (m.is_active or not active_only)
            ]
        matches.sort(key=lambda m: (m.updated_at, str(m.id)), reverse=True)
        return matches

    async def set_match_active(self, match_id: UUID, active: bool) -> MatchRecord | None:
        async with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                return None
            match.is_active = active
            match.updated_at = datetime.now(timezone.utc)
            return match.model_copy(deep=True)

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
        async with self._lock:
            if match_id not in self._matches:
                raise TransientStoreError(f"Match {match_id} vanished during insert")
            thread = self._messages.setdefault(match_id, [])
            message = MessageRecord(
                id=uuid.uuid4(),
                match_id=match_id,
                seq=len(thread) + 1,
                sender_id=sender_id,
                receiver_id=receiver_id,
                is_system=is_system,
                text=text,
                is_read=False,
                created_at=created_at,
            )
            thread.append(message)
            return message.model_copy()

    async def update_last_message(self, match_id: UUID, message: MessageRecord) -> bool:
        async with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                return False
            current = match.last_message
            if current is not None and current.seq >= message.seq:
                return False
            match.last_message = LastMessage(
                text=message.text,
                sender_id=message.sender_id,
                timestamp=message.created_at,
                seq=message.seq,
            )
            match.updated_at = message.created_at
            return True

    async def mark_read(self, match_id: UUID, receiver_id: UUID) -> int:
        marked = 0
        async with self._lock:
            for message in self._messages.get(match_id, []):
                if message.receiver_id == receiver_id and not message.is_read:
                    message.is_read = True
                    marked += 1
        return marked

    async def list_messages(self, match_id: UUID) -> list[MessageRecord]:
        async with self._lock:
            thread = self._messages.get(match_id, [])
            return [m.model_copy() for m in sorted(thread, key=lambda m: m.seq)]
