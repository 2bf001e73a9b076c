"""
LoveConnect — Realtime Delivery Broker (Socket.IO namespace ``/chat``).

Connection lifecycle::

    connect(auth) ── token ok ──▶ registered in presence, joined to
                                   user:{id} and every active match:{id}
                  └─ bad token ─▶ refused, nothing recorded
    join / send_message / typing / stop_typing
    disconnect ──▶ presence released, user_offline on last connection

Domain failures inside a handler are reported to the offending session
only, as an ``error`` event carrying ``{kind, message}``.

The namespace doubles as the services' ``MatchNotifier`` so that a message
submitted over HTTP reaches the match room exactly like one sent over the
socket.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import socketio
import structlog
from socketio.exceptions import ConnectionRefusedError

from app.auth import authenticate_socket
from app.errors import (
    AuthenticationError,
    DomainError,
    NotAuthorizedError,
    NotMemberError,
    ValidationError,
)
from app.realtime.presence import PresenceRegistry
from app.schemas.match import MatchRecord
from app.schemas.message import MessagePayload, MessageRecord
from app.schemas.profile import ProfileRecord
from app.services.conversation_service import ConversationService
from app.services.notifier import MatchNotifier

logger = structlog.get_logger("loveconnect.broker")

NAMESPACE = "/chat"


def user_room(user_id: UUID | str) -> str:
    return f"user:{user_id}"


def match_room(match_id: UUID | str) -> str:
    return f"match:{match_id}"


def _parse_match_id(payload: Any) -> UUID:
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be an object")
    raw = payload.get("matchId")
    if raw is None:
        raise ValidationError("matchId is required")
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise ValidationError("matchId must be a UUID") from exc


def _parse_text(payload: dict) -> str:
    text = payload.get("text")
    if not isinstance(text, str):
        raise ValidationError("text must be a string")
    return text


def _reports_errors(handler: Callable[..., Awaitable[None]]) -> Callable[..., Awaitable[None]]:
    """Turn a ``DomainError`` raised by ``handler`` into a local error event."""

    @functools.wraps(handler)
    async def wrapper(self: "ChatNamespace", sid: str, *args: Any) -> None:
        try:
            await handler(self, sid, *args)
        except DomainError as exc:
            logger.info(
                "socket_event_rejected",
                event=handler.__name__.removeprefix("on_"),
                sid=sid,
                kind=exc.kind,
            )
            await self.emit("error", exc.to_dict(), room=sid)

    return wrapper


class ChatNamespace(socketio.AsyncNamespace, MatchNotifier):
    """Authenticated chat transport with presence and room fan-out."""

    def __init__(
        self,
        conversation_service: ConversationService,
        presence: PresenceRegistry,
    ) -> None:
        super().__init__(NAMESPACE)
        self._conversations = conversation_service
        self._presence = presence

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
        try:
            user_id = authenticate_socket(environ, auth)
        except AuthenticationError as exc:
            logger.info("socket_connect_refused", sid=sid, reason=exc.message)
            raise ConnectionRefusedError(exc.to_dict()) from exc

        log = logger.bind(sid=sid, user_id=str(user_id))

        match_ids = await self._conversations.active_match_ids(user_id)
        first = await self._presence.register(user_id, sid)

        await self.enter_room(sid, user_room(user_id))
        for match_id in match_ids:
            await self._join(sid, match_room(match_id))

        if first:
            for match_id in match_ids:
                await self.emit(
                    "user_online",
                    {"userId": str(user_id)},
                    room=match_room(match_id),
                    skip_sid=sid,
                )

        await self.emit(
            "connected",
            {"userId": str(user_id), "matchIds": [str(m) for m in match_ids]},
            room=sid,
        )
        log.info("socket_connected", rooms=len(match_ids), first_connection=first)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        user_id, last, rooms = await self._presence.unregister(sid)
        if user_id is None:
            return
        if last:
            for room in sorted(rooms):
                await self.emit(
                    "user_offline",
                    {"userId": str(user_id)},
                    room=room,
                    skip_sid=sid,
                )
        logger.info(
            "socket_disconnected",
            sid=sid,
            user_id=str(user_id),
            last_connection=last,
        )

    # ------------------------------------------------------------------ #
    # Client events
    # ------------------------------------------------------------------ #

    @_reports_errors
    async def on_join(self, sid: str, payload: Any = None) -> None:
        user_id = self._require_user(sid)
        match_id = _parse_match_id(payload)
        await self._conversations.require_member(match_id, user_id)
        await self._join(sid, match_room(match_id))
        await self.emit("joined", {"matchId": str(match_id)}, room=sid)

    @_reports_errors
    async def on_send_message(self, sid: str, payload: Any = None) -> None:
        user_id = self._require_user(sid)
        match_id = _parse_match_id(payload)
        text = _parse_text(payload)

        try:
            await self._conversations.require_member(match_id, user_id)
        except NotAuthorizedError as exc:
            raise NotMemberError() from exc

        room = match_room(match_id)
        if room not in self._presence.rooms_for(sid):
            await self._join(sid, room)

        # The persisted message is broadcast through ``message_created``.
        await self._conversations.append_message(match_id, user_id, text)

    @_reports_errors
    async def on_typing(self, sid: str, payload: Any = None) -> None:
        await self._relay_typing("typing", sid, payload)

    @_reports_errors
    async def on_stop_typing(self, sid: str, payload: Any = None) -> None:
        await self._relay_typing("stop_typing", sid, payload)

    async def _relay_typing(self, event: str, sid: str, payload: Any) -> None:
        user_id = self._require_user(sid)
        match_id = _parse_match_id(payload)
        room = match_room(match_id)
        if room not in self._presence.rooms_for(sid):
            raise NotMemberError()
        await self.emit(
            event,
            {"matchId": str(match_id), "userId": str(user_id)},
            room=room,
            skip_sid=sid,
        )

    # ------------------------------------------------------------------ #
    # MatchNotifier hooks
    # ------------------------------------------------------------------ #

    @property
    def attached(self) -> bool:
        """True once registered with a ``socketio.AsyncServer``."""
        return getattr(self, "server", None) is not None

    async def message_created(self, message: MessageRecord) -> None:
        if not self.attached:
            return
        payload = MessagePayload.from_record(message).model_dump(by_alias=True, mode="json")
        await self.emit("message", payload, room=match_room(message.match_id))

    async def match_created(self, match: MatchRecord, profiles: dict[UUID, ProfileRecord]) -> None:
        if not self.attached:
            return
        room = match_room(match.id)
        for user_id in match.members:
            for sid in self._presence.connections(user_id):
                await self._join(sid, room)

            other = profiles.get(match.other_member(user_id))
            await self.emit(
                "match",
                {
                    "matchId": str(match.id),
                    "user": other.public().model_dump(mode="json") if other else None,
                },
                room=user_room(user_id),
            )
        logger.info("match_notified", match_id=str(match.id))

    async def super_like_received(self, from_profile: ProfileRecord, to_user_id: UUID) -> None:
        if not self.attached:
            return
        await self.emit(
            "super_like",
            {"fromUser": from_profile.public().model_dump(mode="json")},
            room=user_room(to_user_id),
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require_user(self, sid: str) -> UUID:
        user_id = self._presence.user_for(sid)
        if user_id is None:
            raise AuthenticationError("Connection is not authenticated")
        return user_id

    async def _join(self, sid: str, room: str) -> None:
        await self.enter_room(sid, room)
        await self._presence.join_room(sid, room)
