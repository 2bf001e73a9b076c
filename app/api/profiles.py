"""
LoveConnect — Profile API

Preference and profile updates for the authenticated user.  Bodies are
validated against explicit structs; unknown fields are rejected with 422.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.api.deps import get_profile_service
from app.auth import get_current_user_id
from app.schemas.profile import (
    Preferences,
    PreferencesUpdate,
    ProfileRecord,
    ProfileUpdate,
    PublicProfile,
)
from app.services.profile_service import ProfileService

router = APIRouter()


class OwnProfile(PublicProfile):
    interested_in: str
    relationship_type: str
    looking_for: str
    bio: str | None = None
    is_premium: bool
    preferences: Preferences

    @classmethod
    def from_record(cls, profile: ProfileRecord) -> "OwnProfile":
        return cls(
            **profile.public().model_dump(),
            interested_in=profile.interested_in,
            relationship_type=profile.relationship_type,
            looking_for=profile.looking_for,
            bio=profile.bio,
            is_premium=profile.is_premium,
            preferences=profile.preferences,
        )


@router.get("/me", response_model=OwnProfile)
async def get_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> OwnProfile:
    return OwnProfile.from_record(await service.get_profile(user_id))


@router.patch("/me", response_model=OwnProfile)
async def update_me(
    body: ProfileUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> OwnProfile:
    profile = await service.update_profile(user_id, body)
    return OwnProfile.from_record(profile)


@router.get("/me/preferences", response_model=Preferences)
async def get_preferences(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> Preferences:
    return await service.get_preferences(user_id)


@router.put("/me/preferences", response_model=Preferences)
async def put_preferences(
    body: PreferencesUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ProfileService = Depends(get_profile_service),
) -> Preferences:
    return await service.update_preferences(user_id, body)
