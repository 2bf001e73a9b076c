"""
LoveConnect — Candidate Filter & Ranker

Applies the ordered hard filters to a candidate pool, scores survivors with
the canonical ``CompatibilityScorer`` tier (or ``quick_score`` when the query
asks for it, or asks for ``auto`` and nothing in the page is enriched) and
returns a deterministic, stably paginated page.

Filter order (first failure rejects the candidate):
  1. self
  2. already liked or matched
  3. age within the requester's preference range
  4. candidate's gender matches requester's ``interested_in``
  5. requester's gender matches candidate's ``interested_in``
  6. category / interest list
  7. relationship type
  8. distance within the requester's radius (only when both have coordinates)
"""

from __future__ import annotations

import math
from typing import Iterable, Optional
from uuid import UUID

import structlog

from app.errors import NotFoundError
from app.schemas.candidate import CandidatePage, CandidateQuery, ScoredCandidate
from app.schemas.profile import ProfileRecord
from app.services.scoring_service import (
    CompatibilityScorer,
    common_interests,
    distance_km,
)
from app.stores.base import ProfileStore

logger = structlog.get_logger("loveconnect.candidate_service")

# interested_in value → genders it admits (None admits every gender)
_GENDER_FOR_INTEREST: dict[str, Optional[str]] = {
    "men": "male",
    "women": "female",
    "everyone": None,
}


def _admits(interested_in: str | None, gender: str) -> bool:
    if not interested_in:
        return True
    wanted = _GENDER_FOR_INTEREST.get(interested_in)
    return wanted is None or wanted == gender


def passes_filters(
    requester: ProfileRecord,
    candidate: ProfileRecord,
    query: CandidateQuery,
) -> bool:
    """Return True when ``candidate`` survives every hard filter."""
    if candidate.id == requester.id:
        return False

    if candidate.id in requester.likes or candidate.id in requester.matches:
        return False

    prefs = requester.preferences
    if not (prefs.age_min <= candidate.age <= prefs.age_max):
        return False

    if not _admits(requester.interested_in, candidate.gender):
        return False
    if not _admits(candidate.interested_in, requester.gender):
        return False

    if query.category and query.category != "all":
        if query.category not in candidate.interests:
            return False
    if query.interests and not set(query.interests) & set(candidate.interests):
        return False

    relationship_type = query.relationship_type or prefs.relationship_type
    if relationship_type and candidate.relationship_type != relationship_type:
        return False

    distance = distance_km(requester, candidate)
    if distance is not None and distance > prefs.distance:
        return False

    return True


def _has_enrichment(profile: ProfileRecord) -> bool:
    return bool(profile.activity_score or profile.profile_completeness or profile.has_coordinates)


def _resolve_tier(
    requested: str,
    requester: ProfileRecord,
    survivors: list[ProfileRecord],
) -> str:
    """One tier per page, so every score in a page is on the same scale."""
    if requested != "auto":
        return requested
    if _has_enrichment(requester) or any(_has_enrichment(c) for c in survivors):
        return "canonical"
    return "quick"


class CandidateService:
    """Rank unmatched candidates for a requester.

    ``rank`` is pure over its inputs; ``discover`` loads the requester and
    the pool from the ``ProfileStore`` and delegates to it.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        scorer: CompatibilityScorer | None = None,
    ) -> None:
        self._profiles = profile_store
        self._scorer = scorer or CompatibilityScorer()

    def rank(
        self,
        requester: ProfileRecord,
        pool: Iterable[ProfileRecord],
        query: CandidateQuery,
    ) -> CandidatePage:
        survivors = [c for c in pool if passes_filters(requester, c, query)]
        tier = _resolve_tier(query.scoring, requester, survivors)

        scored: list[tuple[float, ProfileRecord, list[str], Optional[float]]] = []
        for candidate in survivors:
            common = common_interests(requester, candidate)
            distance = distance_km(requester, candidate)
            if tier == "quick":
                value = float(self._scorer.quick_score(requester, candidate, common))
            else:
                value = self._scorer.score(requester, candidate, common, distance)
            if value < query.min_score:
                continue
            scored.append((value, candidate, common, distance))

        scored.sort(key=lambda item: (-item[0], -item[1].activity_score, str(item[1].id)))

        total = len(scored)
        start = (query.page - 1) * query.limit
        window = scored[start:start + query.limit]

        return CandidatePage(
            users=[
                _to_scored_candidate(candidate, value, common, distance)
                for value, candidate, common, distance in window
            ],
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=math.ceil(total / query.limit) if total else 0,
            scoring=tier,
        )

    async def discover(self, user_id: UUID, query: CandidateQuery) -> CandidatePage:
        log = logger.bind(user_id=str(user_id), page=query.page, limit=query.limit)

        requester = await self._profiles.find_by_id(user_id)
        if requester is None:
            raise NotFoundError("User not found")

        excluded = {requester.id, *requester.likes, *requester.matches}
        pool = await self._profiles.list_candidates(excluded)

        page = self.rank(requester, pool, query)
        log.info("candidates_ranked", pool_size=len(pool), total=page.total, scoring=page.scoring)
        return page


def _to_scored_candidate(
    candidate: ProfileRecord,
    value: float,
    common: list[str],
    distance: Optional[float],
) -> ScoredCandidate:
    return ScoredCandidate(
        id=candidate.id,
        display_name=candidate.display_name,
        age=candidate.age,
        gender=candidate.gender,
        interested_in=candidate.interested_in,
        relationship_type=candidate.relationship_type,
        looking_for=candidate.looking_for,
        interests=list(candidate.interests),
        common_interests=common,
        compatibility_score=round(value),
        distance=round(distance) if distance is not None else None,
        activity_score=candidate.activity_score,
        avatar_url=candidate.avatar_url,
        bio=candidate.bio,
    )
