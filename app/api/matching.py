"""
LoveConnect — Matching API

Likes, super-likes, match listing and unmatching for the authenticated user.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status

from app.api.deps import get_matching_service
from app.auth import get_current_user_id
from app.schemas.match import LikeResponse, MatchListItem, MatchRecord
from app.services.matching_service import MatchingService

logger = structlog.get_logger("loveconnect.api.matching")

router = APIRouter()


@router.post(
    "/like/{to_user_id}",
    response_model=LikeResponse,
    summary="Like another user",
)
async def like_user(
    to_user_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> LikeResponse:
    """Record a like; ``is_match`` is true when the like was mutual."""
    return await service.record_like(user_id, to_user_id)


@router.post(
    "/super-like/{to_user_id}",
    response_model=LikeResponse,
    summary="Super-like another user (premium)",
)
async def super_like_user(
    to_user_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> LikeResponse:
    return await service.record_super_like(user_id, to_user_id)


@router.get(
    "",
    response_model=list[MatchListItem],
    summary="List active matches, most recent first",
)
async def list_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> list[MatchListItem]:
    return await service.list_matches(user_id)


@router.post(
    "/{match_id}/unmatch",
    response_model=MatchRecord,
    status_code=status.HTTP_200_OK,
    summary="Deactivate a match",
)
async def unmatch(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> MatchRecord:
    """Soft-deactivate the match. Message history is kept."""
    match = await service.deactivate_match(match_id, user_id)
    logger.info("unmatch_requested", match_id=str(match_id), user_id=str(user_id))
    return match
