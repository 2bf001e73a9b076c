"""Shared pytest fixtures for LoveConnect tests."""
import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "loveconnect-test-secret-at-least-32-bytes")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid

import pytest

from app.config import get_settings
from app.schemas.profile import Preferences, ProfileRecord
from app.services.candidate_service import CandidateService
from app.services.conversation_service import ConversationService
from app.services.matching_service import MatchingService
from app.services.notifier import MatchNotifier
from app.services.profile_service import ProfileService
from app.stores.memory import InMemoryConversationStore, InMemoryProfileStore


class RecordingNotifier(MatchNotifier):
    """Notifier that keeps every call for assertions."""

    def __init__(self):
        self.matches = []
        self.super_likes = []
        self.messages = []

    async def match_created(self, match, profiles):
        self.matches.append((match, profiles))

    async def super_like_received(self, from_profile, to_user_id):
        self.super_likes.append((from_profile.id, to_user_id))

    async def message_created(self, message):
        self.messages.append(message)


def build_profile(**overrides) -> ProfileRecord:
    """ProfileRecord with sensible defaults; any field can be overridden."""
    preferences = overrides.pop("preferences", None) or Preferences()
    data = {
        "id": uuid.uuid4(),
        "display_name": "User",
        "age": 25,
        "gender": "female",
        "interested_in": "everyone",
        "relationship_type": "",
        "looking_for": "",
        "interests": [],
        "activity_score": 0,
        "profile_completeness": 0,
        "is_premium": False,
        "preferences": preferences,
    }
    data.update(overrides)
    return ProfileRecord(**data)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def conversation_store():
    return InMemoryConversationStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def conversation_service(conversation_store, notifier, settings):
    return ConversationService(conversation_store, notifier=notifier, settings=settings)


@pytest.fixture
def matching_service(profile_store, conversation_store, conversation_service, notifier):
    return MatchingService(
        profile_store,
        conversation_store,
        conversation_service,
        notifier=notifier,
    )


@pytest.fixture
def candidate_service(profile_store):
    return CandidateService(profile_store)


@pytest.fixture
def profile_service(profile_store):
    return ProfileService(profile_store)


@pytest.fixture
def alex():
    """25-year-old man interested in women."""
    return build_profile(
        display_name="Alex",
        age=25,
        gender="male",
        interested_in="women",
        interests=["coffee", "travel", "music"],
        relationship_type="serious",
    )


@pytest.fixture
def bella():
    """24-year-old woman interested in men."""
    return build_profile(
        display_name="Bella",
        age=24,
        gender="female",
        interested_in="men",
        interests=["coffee", "music", "food"],
        relationship_type="serious",
    )


@pytest.fixture
async def stored_pair(profile_store, alex, bella):
    await profile_store.add(alex)
    await profile_store.add(bella)
    return alex, bella


@pytest.fixture
async def active_match(matching_service, stored_pair):
    """Alex and Bella liked each other; Bella completed the match."""
    alex, bella = stored_pair
    await matching_service.record_like(alex.id, bella.id)
    response = await matching_service.record_like(bella.id, alex.id)
    return response.match
