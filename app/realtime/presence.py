"""
LoveConnect — Presence & Room Registry

Table of who is online and through which Socket.IO sessions.  Sessions and
rooms are process-local.  All mutations happen under one ``asyncio.Lock``
so registering and unregistering the same user never interleave.

When the Redis backplane is configured, ``start(counter=...)`` receives the
Redis client and the "first connection" / "last connection" decisions are
made on a per-user connection count shared by every instance
(``presence:{user_id}``).  A user connected to two instances then goes
offline only when the last of those connections drops.  Counts held by an
instance that dies without ``stop()`` are not reclaimed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional
from uuid import UUID

import structlog

logger = structlog.get_logger("loveconnect.presence")

COUNTER_KEY = "presence:{user_id}"


class PresenceRegistry:

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sids_by_user: dict[UUID, set[str]] = {}
        self._user_by_sid: dict[str, UUID] = {}
        self._rooms_by_sid: dict[str, set[str]] = {}
        self._counter: Any = None
        self._running = False

    # ── lifecycle ─────────────────────────────────────────────────

    async def start(self, counter: Any = None) -> None:
        """Reset local state; ``counter`` is an optional ``redis.asyncio`` client."""
        async with self._lock:
            self._clear()
            self._counter = counter
            self._running = True
        logger.info("presence_started", shared_counter=counter is not None)

    async def stop(self) -> None:
        async with self._lock:
            dropped = len(self._user_by_sid)
            if self._counter is not None:
                for user_id in list(self._user_by_sid.values()):
                    await self._release(user_id)
            self._clear()
            self._counter = None
            self._running = False
        logger.info("presence_stopped", dropped_connections=dropped)

    @property
    def running(self) -> bool:
        return self._running

    def _clear(self) -> None:
        self._sids_by_user.clear()
        self._user_by_sid.clear()
        self._rooms_by_sid.clear()

    # ── shared counter ────────────────────────────────────────────

    async def _acquire(self, user_id: UUID) -> bool:
        count = await self._counter.incr(COUNTER_KEY.format(user_id=user_id))
        return int(count) == 1

    async def _release(self, user_id: UUID) -> bool:
        key = COUNTER_KEY.format(user_id=user_id)
        remaining = int(await self._counter.decr(key))
        if remaining <= 0:
            await self._counter.delete(key)
            return True
        return False

    # ── connections ───────────────────────────────────────────────

    async def register(self, user_id: UUID, sid: str) -> bool:
        """Track ``sid`` for ``user_id``; True when it is the user's first."""
        async with self._lock:
            sids = self._sids_by_user.setdefault(user_id, set())
            first = not sids
            sids.add(sid)
            self._user_by_sid[sid] = user_id
            self._rooms_by_sid.setdefault(sid, set())
            if self._counter is not None:
                first = await self._acquire(user_id)
        logger.debug("presence_registered", user_id=str(user_id), sid=sid, first=first)
        return first

    async def unregister(self, sid: str) -> tuple[Optional[UUID], bool, set[str]]:
        """Forget ``sid``.

        Returns ``(user_id, was_last_connection, rooms_the_sid_was_in)``;
        ``user_id`` is None for an unknown sid.
        """
        async with self._lock:
            user_id = self._user_by_sid.pop(sid, None)
            rooms = self._rooms_by_sid.pop(sid, set())
            if user_id is None:
                return None, False, rooms
            sids = self._sids_by_user.get(user_id, set())
            sids.discard(sid)
            last = not sids
            if last:
                self._sids_by_user.pop(user_id, None)
            if self._counter is not None:
                last = await self._release(user_id)
        logger.debug("presence_unregistered", user_id=str(user_id), sid=sid, last=last)
        return user_id, last, rooms

    async def join_room(self, sid: str, room: str) -> None:
        async with self._lock:
            if sid in self._user_by_sid:
                self._rooms_by_sid.setdefault(sid, set()).add(room)

    # ── queries ───────────────────────────────────────────────────

    def rooms_for(self, sid: str) -> set[str]:
        return set(self._rooms_by_sid.get(sid, set()))

    def connections(self, user_id: UUID) -> set[str]:
        return set(self._sids_by_user.get(user_id, set()))

    def is_online(self, user_id: UUID) -> bool:
        return bool(self._sids_by_user.get(user_id))

    def user_for(self, sid: str) -> Optional[UUID]:
        return self._user_by_sid.get(sid)

    @property
    def online_count(self) -> int:
        return len(self._sids_by_user)
