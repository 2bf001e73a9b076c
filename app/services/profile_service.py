"""
LoveConnect — Profile preference and field updates.

Updates go through explicit pydantic structs (``PreferencesUpdate`` and
``ProfileUpdate``) so only known fields ever reach the store.
"""

from __future__ import annotations

from uuid import UUID

import structlog

from app.errors import NotFoundError
from app.schemas.profile import Preferences, PreferencesUpdate, ProfileRecord, ProfileUpdate
from app.stores.base import ProfileStore
from app.utils.retry import retry_transient

logger = structlog.get_logger("loveconnect.profile_service")


class ProfileService:

    def __init__(self, profile_store: ProfileStore) -> None:
        self._profiles = profile_store

    async def get_profile(self, user_id: UUID) -> ProfileRecord:
        profile = await self._profiles.find_by_id(user_id)
        if profile is None:
            raise NotFoundError("User not found")
        return profile

    async def get_preferences(self, user_id: UUID) -> Preferences:
        preferences = await self._profiles.get_preferences(user_id)
        if preferences is None:
            raise NotFoundError("User not found")
        return preferences

    async def update_preferences(self, user_id: UUID, update: PreferencesUpdate) -> Preferences:
        preferences = Preferences(**update.model_dump())
        stored = await retry_transient(
            lambda: self._profiles.set_preferences(user_id, preferences),
            label="set_preferences",
        )
        if not stored:
            raise NotFoundError("User not found")
        logger.info("preferences_updated", user_id=str(user_id))
        return preferences

    async def update_profile(self, user_id: UUID, update: ProfileUpdate) -> ProfileRecord:
        """Apply only the fields the caller actually sent."""
        changes = update.model_dump(exclude_unset=True)
        if not changes:
            return await self.get_profile(user_id)

        profile = await retry_transient(
            lambda: self._profiles.update_profile(user_id, changes),
            label="update_profile",
        )
        if profile is None:
            raise NotFoundError("User not found")
        logger.info("profile_updated", user_id=str(user_id), fields=sorted(changes))
        return profile
