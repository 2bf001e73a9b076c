"""
LoveConnect — Conversation Store service

Appends messages to a match and returns a match's history with the
read-receipt side effect.  Writes to one match are serialized by a per-match
keyed lock; the ``(match_id, seq)`` unique constraint catches writers in
other processes, and those conflicts are retried as transient failures.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog

from app.config import Settings, get_settings
from app.errors import (
    InactiveMatchError,
    MessageTooLongError,
    NotAuthorizedError,
    NotMemberError,
    ValidationError,
)
from app.schemas.match import MatchRecord
from app.schemas.message import MessageRecord
from app.services.notifier import MatchNotifier
from app.stores.base import ConversationStore
from app.utils.locks import KeyedLock
from app.utils.retry import retry_transient

logger = structlog.get_logger("loveconnect.conversation_service")


class ConversationService:
    """Message persistence and retrieval for matched pairs."""

    def __init__(
        self,
        conversation_store: ConversationStore,
        notifier: MatchNotifier | None = None,
        match_locks: KeyedLock | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = conversation_store
        self._notifier = notifier or MatchNotifier()
        self._locks = match_locks or KeyedLock()
        self._settings = settings or get_settings()

    def set_notifier(self, notifier: MatchNotifier) -> None:
        self._notifier = notifier

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def append_message(self, match_id: UUID, sender_id: UUID, text: str) -> MessageRecord:
        """Persist a member's message and broadcast it to the match room.

        Raises
        ------
        ValidationError
            Empty or whitespace-only text.
        InactiveMatchError
            The match is missing or deactivated.
        NotMemberError
            ``sender_id`` is not one of the two members.
        MessageTooLongError
            Text longer than ``MESSAGE_MAX_LENGTH`` characters.
        """
        log = logger.bind(match_id=str(match_id), sender_id=str(sender_id))

        if text is None or not text.strip():
            raise ValidationError("Message text is required")

        match = await self._store.get_match(match_id)
        if match is None or not match.is_active:
            raise InactiveMatchError()
        if not match.has_member(sender_id):
            raise NotMemberError()

        if len(text) > self._settings.MESSAGE_MAX_LENGTH:
            raise MessageTooLongError(
                f"Message exceeds {self._settings.MESSAGE_MAX_LENGTH} characters"
            )

        message = await self._persist(
            match,
            sender_id=sender_id,
            receiver_id=match.other_member(sender_id),
            text=text,
            is_system=False,
            broadcast=True,
        )
        log.info("message_appended", message_id=str(message.id), seq=message.seq)
        return message

    async def post_system_message(self, match: MatchRecord, receiver_id: UUID, text: str) -> MessageRecord:
        """Write a system-authored message addressed to ``receiver_id``."""
        message = await self._persist(
            match,
            sender_id=None,
            receiver_id=receiver_id,
            text=text,
            is_system=True,
        )
        logger.info(
            "system_message_posted",
            match_id=str(match.id),
            receiver_id=str(receiver_id),
            seq=message.seq,
        )
        return message

    async def _persist(
        self,
        match: MatchRecord,
        *,
        sender_id: UUID | None,
        receiver_id: UUID,
        text: str,
        is_system: bool,
        broadcast: bool = False,
    ) -> MessageRecord:
        """Insert and summarise under the match lock.

        The broadcast is emitted while the lock is held, so live delivery
        for one match leaves in ``seq`` order.
        """
        async with self._locks.hold(match.id):
            message = await retry_transient(
                lambda: self._store.insert_message(
                    match_id=match.id,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    text=text,
                    is_system=is_system,
                    created_at=datetime.now(timezone.utc),
                ),
                label="insert_message",
            )
            await retry_transient(
                lambda: self._store.update_last_message(match.id, message),
                label="update_last_message",
            )
            if broadcast:
                await self._notifier.message_created(message)
        return message

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def require_member(self, match_id: UUID, user_id: UUID) -> MatchRecord:
        match = await self._store.get_match(match_id)
        if match is None or not match.has_member(user_id):
            raise NotAuthorizedError()
        return match

    async def list_messages(self, match_id: UUID, requesting_user: UUID) -> list[MessageRecord]:
        """Mark the requester's unread messages as read, then return the thread.

        The read-marking is part of the contract: fetching a conversation is
        what acknowledges it.  A second fetch marks nothing new.
        """
        await self.require_member(match_id, requesting_user)

        async with self._locks.hold(match_id):
            marked = await retry_transient(
                lambda: self._store.mark_read(match_id, requesting_user),
                label="mark_read",
            )
            messages = await retry_transient(
                lambda: self._store.list_messages(match_id),
                label="list_messages",
            )

        logger.debug(
            "messages_listed",
            match_id=str(match_id),
            user_id=str(requesting_user),
            marked_read=marked,
            count=len(messages),
        )
        return messages

    async def active_match_ids(self, user_id: UUID) -> list[UUID]:
        matches = await self._store.list_matches_for_user(user_id, active_only=True)
        return [m.id for m in matches]
