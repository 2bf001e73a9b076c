"""
LoveConnect — Match Formation Engine

Records directed likes, detects reciprocity and, on a mutual like, creates
exactly one ``Match`` per unordered pair:

  1. validate (self-like, both profiles exist, premium for super-likes)
  2. append the like edge; an edge that already existed is a duplicate
  3. re-read the target's like set from the store; if it holds the
     requester → create the match, add each user to the other's match set,
     post the system welcome message to the initiator and notify both users

Check-and-create runs under a keyed lock on the sorted pair.  Reciprocity is
read after the requester's own like is committed, so of two concurrent
reciprocal likes (even on different instances) the later writer always sees
the earlier one.  When both see each other, the unique ``pair_key``
constraint decides: the loser receives the existing match and posts no
second welcome message.
"""

from __future__ import annotations

from uuid import UUID

import structlog

from app.errors import (
    DuplicateLikeError,
    NotAuthorizedError,
    NotFoundError,
    PermissionDeniedError,
    SelfLikeError,
)
from app.schemas.match import LikeResponse, MatchListItem, MatchRecord, pair_key
from app.schemas.profile import ProfileRecord
from app.services.conversation_service import ConversationService
from app.services.notifier import MatchNotifier
from app.stores.base import ConversationStore, MatchPairConflict, ProfileStore
from app.utils.locks import KeyedLock
from app.utils.retry import retry_transient

logger = structlog.get_logger("loveconnect.matching_service")

WELCOME_TEMPLATE = "You matched with {name}! Start the conversation."


class MatchingService:
    """Mutual-like match formation and match listing.

    Dependencies are injected at construction so that the service can be
    tested against the in-memory stores and a recording notifier.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        conversation_store: ConversationStore,
        conversation_service: ConversationService,
        notifier: MatchNotifier | None = None,
        pair_locks: KeyedLock | None = None,
    ) -> None:
        self._profiles = profile_store
        self._conversations = conversation_store
        self._conversation_service = conversation_service
        self._notifier = notifier or MatchNotifier()
        self._pair_locks = pair_locks or KeyedLock()

    def set_notifier(self, notifier: MatchNotifier) -> None:
        self._notifier = notifier

    # ------------------------------------------------------------------ #
    # Likes
    # ------------------------------------------------------------------ #

    async def record_like(self, from_user: UUID, to_user: UUID) -> LikeResponse:
        return await self._record(from_user, to_user, super_like=False)

    async def record_super_like(self, from_user: UUID, to_user: UUID) -> LikeResponse:
        """Premium-only like that also notifies the target."""
        return await self._record(from_user, to_user, super_like=True)

    async def _record(self, from_user: UUID, to_user: UUID, *, super_like: bool) -> LikeResponse:
        log = logger.bind(
            from_user=str(from_user),
            to_user=str(to_user),
            super_like=super_like,
        )

        if from_user == to_user:
            raise SelfLikeError()

        async with self._pair_locks.hold(pair_key(from_user, to_user)):
            profiles = await retry_transient(
                lambda: self._profiles.find_by_ids([from_user, to_user]),
                label="find_profiles",
            )
            from_profile = profiles.get(from_user)
            to_profile = profiles.get(to_user)
            if from_profile is None or to_profile is None:
                raise NotFoundError("User not found")

            if super_like and not from_profile.is_premium:
                raise PermissionDeniedError()

            added = await retry_transient(
                lambda: self._profiles.append_to_set(from_user, "likes", to_user),
                label="append_like",
            )
            if not added:
                raise DuplicateLikeError()

            if super_like:
                await retry_transient(
                    lambda: self._profiles.append_to_set(from_user, "super_likes", to_user),
                    label="append_super_like",
                )

            match: MatchRecord | None = None
            created = False
            reciprocated = await retry_transient(
                lambda: self._profiles.has_in_set(to_user, "likes", from_user),
                label="check_reciprocity",
            )
            if reciprocated:
                match, created = await self._form_match(from_profile, to_profile)

        log.info("like_recorded", is_match=match is not None)

        if super_like:
            await self._notifier.super_like_received(from_profile, to_user)

        if match is None:
            return LikeResponse(is_match=False, match=None, message="Like saved")

        if created:
            await self._notifier.match_created(
                match, {from_user: from_profile, to_user: to_profile}
            )
        return LikeResponse(is_match=True, match=match, message="It's a match!")

    async def _form_match(
        self,
        initiator: ProfileRecord,
        other: ProfileRecord,
    ) -> tuple[MatchRecord, bool]:
        """Create the match for a mutual like; return ``(match, created)``."""
        log = logger.bind(initiator=str(initiator.id), other=str(other.id))

        try:
            match = await retry_transient(
                lambda: self._conversations.create_match(initiator.id, other.id),
                label="create_match",
            )
        except MatchPairConflict:
            existing = await self._conversations.get_match_by_pair(initiator.id, other.id)
            if existing is None:
                raise
            log.info("match_already_exists", match_id=str(existing.id))
            return existing, False

        await retry_transient(
            lambda: self._profiles.append_to_set(initiator.id, "matches", other.id),
            label="append_match",
        )
        await retry_transient(
            lambda: self._profiles.append_to_set(other.id, "matches", initiator.id),
            label="append_match",
        )

        welcome = await self._conversation_service.post_system_message(
            match,
            receiver_id=initiator.id,
            text=WELCOME_TEMPLATE.format(name=other.display_name),
        )
        refreshed = await self._conversations.get_match(match.id) or match
        log.info("match_created", match_id=str(match.id), welcome_seq=welcome.seq)
        return refreshed, True

    # ------------------------------------------------------------------ #
    # Match listing / lifecycle
    # ------------------------------------------------------------------ #

    async def list_matches(self, user_id: UUID) -> list[MatchListItem]:
        """Active matches of ``user_id``, most recently updated first."""
        user = await self._profiles.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        matches = await retry_transient(
            lambda: self._conversations.list_matches_for_user(user_id, active_only=True),
            label="list_matches",
        )
        others = await self._profiles.find_by_ids(m.other_member(user_id) for m in matches)

        items: list[MatchListItem] = []
        for match in matches:
            other = others.get(match.other_member(user_id))
            if other is None:
                logger.warning(
                    "match_member_missing",
                    match_id=str(match.id),
                    user_id=str(user_id),
                )
                continue
            items.append(
                MatchListItem(
                    match_id=match.id,
                    user=other.public(),
                    last_message=match.last_message,
                    matched_at=match.created_at,
                    updated_at=match.updated_at,
                )
            )

        items.sort(key=lambda item: (item.updated_at, str(item.match_id)), reverse=True)
        return items

    async def deactivate_match(self, match_id: UUID, requesting_user: UUID) -> MatchRecord:
        """Unmatch: soft-deactivate the match, keeping its messages."""
        match = await self._conversations.get_match(match_id)
        if match is None or not match.has_member(requesting_user):
            raise NotAuthorizedError()

        updated = await retry_transient(
            lambda: self._conversations.set_match_active(match_id, False),
            label="deactivate_match",
        )
        if updated is None:
            raise NotFoundError("Match not found")
        logger.info(
            "match_deactivated",
            match_id=str(match_id),
            user_id=str(requesting_user),
        )
        return updated
