"""LoveConnect — Candidate discovery API."""

from __future__ import annotations

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_candidate_service
from app.auth import get_current_user_id
from app.config import get_settings
from app.errors import ValidationError
from app.schemas.candidate import CandidatePage, CandidateQuery
from app.schemas.profile import INTEREST_VOCABULARY
from app.services.candidate_service import CandidateService

router = APIRouter()


@router.get(
    "",
    response_model=CandidatePage,
    summary="Ranked, filtered candidates for the current user",
)
async def list_candidates(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    category: Optional[str] = Query(None, description="Single interest, or 'all'"),
    interests: Optional[str] = Query(None, description="Comma-separated interests"),
    relationship_type: Optional[str] = Query(None),
    min_score: float = Query(0.0, ge=0, le=100),
    scoring: Literal["canonical", "quick", "auto"] = Query("canonical"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: CandidateService = Depends(get_candidate_service),
) -> CandidatePage:
    wanted = [i.strip() for i in (interests or "").split(",") if i.strip()]
    unknown = [i for i in wanted if i not in INTEREST_VOCABULARY]
    if category and category != "all" and category not in INTEREST_VOCABULARY:
        unknown.append(category)
    if unknown:
        raise ValidationError(f"Unknown interests: {', '.join(unknown)}")

    query = CandidateQuery(
        page=page,
        limit=limit or get_settings().CANDIDATE_PAGE_SIZE,
        category=category,
        interests=wanted,
        relationship_type=relationship_type or None,
        min_score=min_score,
        scoring=scoring,
    )
    return await service.discover(user_id, query)
