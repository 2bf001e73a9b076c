"""
LoveConnect — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import candidates, matching, messages, profiles

router = APIRouter()

router.include_router(matching.router, prefix="/matches", tags=["Matching"])
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(candidates.router, prefix="/candidates", tags=["Candidates"])
router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
