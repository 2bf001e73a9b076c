"""
LoveConnect — PostgreSQL store backend (SQLAlchemy async ORM).

Each public method is one unit of work opened through ``session_scope``.
Connection-level failures are reported as ``TransientStoreError`` so the
service layer can retry them; uniqueness violations are translated into the
domain signal each caller expects (``MatchPairConflict`` for a duplicate
pair, ``TransientStoreError`` for a lost ``seq`` race).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import session_scope
from app.errors import TransientStoreError
from app.models.match import Match, Message
from app.models.profile import Profile, ProfileEdge
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

logger = structlog.get_logger("loveconnect.stores.sql")

# Columns a ``ProfileUpdate`` may touch.
_UPDATABLE_PROFILE_COLUMNS = frozenset({
    "display_name",
    "age",
    "gender",
    "interested_in",
    "relationship_type",
    "looking_for",
    "interests",
    "bio",
    "latitude",
    "longitude",
})


@asynccontextmanager
async def _unit_of_work(operation: str) -> AsyncIterator[AsyncSession]:
    try:
        async with session_scope() as session:
            yield session
    except (OperationalError, PoolTimeoutError) as exc:
        logger.warning("store_transient_failure", operation=operation, error=str(exc))
        raise TransientStoreError() from exc


def _violates(exc: IntegrityError, constraint: str) -> bool:
    return constraint in str(exc.orig)


# ──────────────────────────────────────────────────────────────────────────────
# Row → record conversion
# ──────────────────────────────────────────────────────────────────────────────

def _profile_to_record(row: Profile) -> ProfileRecord:
    sets: dict[str, set[UUID]] = {name: set() for name in PROFILE_SETS}
    for edge in row.edges:
        sets.setdefault(edge.kind, set()).add(edge.target_id)

    return ProfileRecord(
        id=row.id,
        display_name=row.display_name,
        age=row.age,
        gender=row.gender,
        interested_in=row.interested_in,
        relationship_type=row.relationship_type,
        looking_for=row.looking_for,
        interests=list(row.interests or []),
        latitude=row.latitude,
        longitude=row.longitude,
        avatar_url=row.avatar_url,
        bio=row.bio,
        activity_score=row.activity_score,
        profile_completeness=row.profile_completeness,
        is_premium=row.is_premium,
        preferences=_preferences_of(row),
        likes=sets["likes"],
        super_likes=sets["super_likes"],
        matches=sets["matches"],
    )


def _preferences_of(row: Profile) -> Preferences:
    return Preferences(
        age_min=row.pref_age_min,
        age_max=row.pref_age_max,
        distance=row.pref_distance,
        relationship_type=row.pref_relationship_type,
    )


def _match_to_record(row: Match) -> MatchRecord:
    last_message = None
    if row.last_message_at is not None:
        last_message = LastMessage(
            text=row.last_message_text or "",
            sender_id=row.last_message_sender_id,
            timestamp=row.last_message_at,
            seq=row.last_message_seq,
        )
    return MatchRecord(
        id=row.id,
        user_a_id=row.user_a_id,
        user_b_id=row.user_b_id,
        is_active=row.is_active,
        last_message=last_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Profile store
# ──────────────────────────────────────────────────────────────────────────────

class SqlProfileStore(ProfileStore):

    async def find_by_id(self, profile_id: UUID) -> ProfileRecord | None:
        async with _unit_of_work("find_profile") as session:
            row = await session.get(Profile, profile_id)
            return _profile_to_record(row) if row is not None else None

    async def find_by_ids(self, profile_ids: Iterable[UUID]) -> dict[UUID, ProfileRecord]:
        ids = set(profile_ids)
        if not ids:
            return {}
        async with _unit_of_work("find_profiles") as session:
            result = await session.execute(select(Profile).where(Profile.id.in_(ids)))
            return {row.id: _profile_to_record(row) for row in result.scalars()}

    async def append_to_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        if field not in PROFILE_SETS:
            raise ValueError(f"Unknown profile set {field!r}")
        stmt = (
            pg_insert(ProfileEdge)
            .values(user_id=profile_id, kind=field, target_id=value)
            .on_conflict_do_nothing(constraint="uq_profile_edge")
            .returning(ProfileEdge.id)
        )
        async with _unit_of_work("append_to_set") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def has_in_set(self, profile_id: UUID, field: ProfileSet, value: UUID) -> bool:
        stmt = select(ProfileEdge.id).where(
            ProfileEdge.user_id == profile_id,
            ProfileEdge.kind == field,
            ProfileEdge.target_id == value,
        )
        async with _unit_of_work("has_in_set") as session:
            result = await session.execute(stmt.limit(1))
            return result.scalar_one_or_none() is not None

    async def get_preferences(self, profile_id: UUID) -> Preferences | None:
        async with _unit_of_work("get_preferences") as session:
            row = await session.get(Profile, profile_id)
            return _preferences_of(row) if row is not None else None

    async def set_preferences(self, profile_id: UUID, preferences: Preferences) -> bool:
        stmt = (
            update(Profile)
            .where(Profile.id == profile_id)
            .values(
                pref_age_min=preferences.age_min,
                pref_age_max=preferences.age_max,
                pref_distance=preferences.distance,
                pref_relationship_type=preferences.relationship_type,
            )
        )
        async with _unit_of_work("set_preferences") as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def update_profile(self, profile_id: UUID, changes: dict) -> ProfileRecord | None:
        unknown = set(changes) - _UPDATABLE_PROFILE_COLUMNS
        if unknown:
            raise ValueError(f"Profile fields are not updatable: {sorted(unknown)}")
        async with _unit_of_work("update_profile") as session:
            row = await session.get(Profile, profile_id)
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, value)
            await session.flush()
            return _profile_to_record(row)

    async def list_candidates(self, exclude_ids: Iterable[UUID]) -> list[ProfileRecord]:
        excluded = set(exclude_ids)
        stmt = select(Profile)
        if excluded:
            stmt = stmt.where(Profile.id.notin_(excluded))
        async with _unit_of_work("list_candidates") as session:
            result = await session.execute(stmt)
            return [_profile_to_record(row) for row in result.scalars()]

    async def add(self, profile: ProfileRecord) -> ProfileRecord:
        row = Profile(
            id=profile.id,
            display_name=profile.display_name,
            age=profile.age,
            gender=profile.gender,
            interested_in=profile.interested_in,
            relationship_type=profile.relationship_type,
            looking_for=profile.looking_for,
            interests=list(profile.interests),
            latitude=profile.latitude,
            longitude=profile.longitude,
            avatar_url=profile.avatar_url,
            bio=profile.bio,
            activity_score=profile.activity_score,
            profile_completeness=profile.profile_completeness,
            is_premium=profile.is_premium,
            pref_age_min=profile.preferences.age_min,
            pref_age_max=profile.preferences.age_max,
            pref_distance=profile.preferences.distance,
            pref_relationship_type=profile.preferences.relationship_type,
        )
        for kind in PROFILE_SETS:
            for target in getattr(profile, kind):
                row.edges.append(ProfileEdge(kind=kind, target_id=target))
        async with _unit_of_work("add_profile") as session:
            session.add(row)
            await session.flush()
        logger.info("profile_added", profile_id=str(profile.id))
        return profile


# ──────────────────────────────────────────────────────────────────────────────
# Conversation store
# ──────────────────────────────────────────────────────────────────────────────

class SqlConversationStore(ConversationStore):

    async def get_match(self, match_id: UUID) -> MatchRecord | None:
        async with _unit_of_work("get_match") as session:
            row = await session.get(Match, match_id)
            return _match_to_record(row) if row is not None else None

    async def get_match_by_pair(self, user_x: UUID, user_y: UUID) -> MatchRecord | None:
        stmt = select(Match).where(Match.pair_key == pair_key(user_x, user_y))
        async with _unit_of_work("get_match_by_pair") as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _match_to_record(row) if row is not None else None

    async def create_match(self, user_x: UUID, user_y: UUID) -> MatchRecord:
        if user_x == user_y:
            raise ValueError("A match needs two distinct users")
        key = pair_key(user_x, user_y)
        user_a, user_b = sorted((user_x, user_y))
        now = datetime.now(timezone.utc)
        try:
            async with _unit_of_work("create_match") as session:
                row = Match(
                    user_a_id=user_a,
                    user_b_id=user_b,
                    pair_key=key,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                await session.flush()
                return _match_to_record(row)
        except IntegrityError as exc:
            if _violates(exc, "uq_match_pair"):
                raise MatchPairConflict(key) from exc
            raise

    async def list_matches_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[MatchRecord]:
        stmt = select(Match).where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
        if active_only:
            stmt = stmt.where(Match.is_active.is_(True))
        stmt = stmt.order_by(Match.updated_at.desc(), Match.id.desc())
        async with _unit_of_work("list_matches") as session:
            result = await session.execute(stmt)
            return [_match_to_record(row) for row in result.scalars()]

    async def set_match_active(self, match_id: UUID, active: bool) -> MatchRecord | None:
        async with _unit_of_work("set_match_active") as session:
            row = await session.get(Match, match_id)
            if row is None:
                return None
            row.is_active = active
            row.updated_at = datetime.now(timezone.utc)
            await session.flush()
            return _match_to_record(row)

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
        next_seq = (
            select(func.coalesce(func.max(Message.seq), 0) + 1)
            .where(Message.match_id == match_id)
            .scalar_subquery()
        )
        try:
            async with _unit_of_work("insert_message") as session:
                seq = (await session.execute(select(next_seq))).scalar_one()
                row = Message(
                    match_id=match_id,
                    seq=seq,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    is_system=is_system,
                    text=text,
                    is_read=False,
                    created_at=created_at,
                )
                session.add(row)
                await session.flush()
                return MessageRecord.model_validate(row)
        except IntegrityError as exc:
            if _violates(exc, "uq_message_match_seq"):
                logger.warning("message_seq_conflict", match_id=str(match_id))
                raise TransientStoreError() from exc
            raise

    async def update_last_message(self, match_id: UUID, message: MessageRecord) -> bool:
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.last_message_seq < message.seq)
            .values(
                last_message_text=message.text,
                last_message_sender_id=message.sender_id,
                last_message_at=message.created_at,
                last_message_seq=message.seq,
                updated_at=message.created_at,
            )
        )
        async with _unit_of_work("update_last_message") as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def mark_read(self, match_id: UUID, receiver_id: UUID) -> int:
        stmt = (
            update(Message)
            .where(
                Message.match_id == match_id,
                Message.receiver_id == receiver_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        async with _unit_of_work("mark_read") as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def list_messages(self, match_id: UUID) -> list[MessageRecord]:
        stmt = select(Message).where(Message.match_id == match_id).order_by(Message.seq.asc())
        async with _unit_of_work("list_messages") as session:
            result = await session.execute(stmt)
            return [MessageRecord.model_validate(row) for row in result.scalars()]
