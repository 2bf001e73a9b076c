"""
LoveConnect — Service wiring.

Builds the stores selected by ``STORE_BACKEND`` and the services on top of
them.  The Socket.IO namespace is registered as the services' notifier so
every persisted message and new match reaches live connections.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from app.config import Settings, get_settings
from app.realtime.broker import ChatNamespace
from app.realtime.presence import PresenceRegistry
from app.services.candidate_service import CandidateService
from app.services.conversation_service import ConversationService
from app.services.matching_service import MatchingService
from app.services.profile_service import ProfileService
from app.services.scoring_service import CompatibilityScorer
from app.stores.base import ConversationStore, ProfileStore

logger = structlog.get_logger("loveconnect.container")


@dataclass
class Container:
    settings: Settings
    profile_store: ProfileStore
    conversation_store: ConversationStore
    conversations: ConversationService
    matching: MatchingService
    candidates: CandidateService
    profiles: ProfileService
    presence: PresenceRegistry
    namespace: ChatNamespace


def _build_stores(settings: Settings) -> tuple[ProfileStore, ConversationStore]:
    if settings.STORE_BACKEND == "memory":
        from app.stores.memory import InMemoryConversationStore, InMemoryProfileStore

        return InMemoryProfileStore(), InMemoryConversationStore()

    from app.stores.sql import SqlConversationStore, SqlProfileStore

    return SqlProfileStore(), SqlConversationStore()


def build_container(
    settings: Settings | None = None,
    *,
    profile_store: ProfileStore | None = None,
    conversation_store: ConversationStore | None = None,
) -> Container:
    settings = settings or get_settings()
    if profile_store is None or conversation_store is None:
        default_profiles, default_conversations = _build_stores(settings)
        profile_store = profile_store or default_profiles
        conversation_store = conversation_store or default_conversations

    conversations = ConversationService(conversation_store, settings=settings)
    matching = MatchingService(profile_store, conversation_store, conversations)
    candidates = CandidateService(profile_store, CompatibilityScorer(settings))
    profiles = ProfileService(profile_store)

    presence = PresenceRegistry()
    namespace = ChatNamespace(conversations, presence)
    conversations.set_notifier(namespace)
    matching.set_notifier(namespace)

    logger.info("container_built", store_backend=settings.STORE_BACKEND)
    return Container(
        settings=settings,
        profile_store=profile_store,
        conversation_store=conversation_store,
        conversations=conversations,
        matching=matching,
        candidates=candidates,
        profiles=profiles,
        presence=presence,
        namespace=namespace,
    )
