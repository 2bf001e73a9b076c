"""FastAPI dependencies resolving services from the application container."""

from __future__ import annotations

from fastapi import Request

from app.container import Container
from app.services.candidate_service import CandidateService
from app.services.conversation_service import ConversationService
from app.services.matching_service import MatchingService
from app.services.profile_service import ProfileService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_matching_service(request: Request) -> MatchingService:
    return get_container(request).matching


def get_conversation_service(request: Request) -> ConversationService:
    return get_container(request).conversations


def get_candidate_service(request: Request) -> CandidateService:
    return get_container(request).candidates


def get_profile_service(request: Request) -> ProfileService:
    return get_container(request).profiles
