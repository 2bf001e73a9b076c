"""Unit tests for the in-process store backend."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import build_profile


class TestInMemoryProfileStore:

    @pytest.mark.asyncio
    async def test_append_to_set_reports_novelty(self, profile_store):
        profile = build_profile()
        await profile_store.add(profile)
        target = uuid.uuid4()

        assert await profile_store.append_to_set(profile.id, "likes", target) is True
        assert await profile_store.append_to_set(profile.id, "likes", target) is False

    @pytest.mark.asyncio
    async def test_unknown_set_rejected(self, profile_store):
        profile = build_profile()
        await profile_store.add(profile)
        with pytest.raises(ValueError):
            await profile_store.append_to_set(profile.id, "blocks", uuid.uuid4())

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, profile_store):
        profile = build_profile()
        await profile_store.add(profile)

        loaded = await profile_store.find_by_id(profile.id)
        loaded.likes.add(uuid.uuid4())

        assert (await profile_store.find_by_id(profile.id)).likes == set()

    @pytest.mark.asyncio
    async def test_list_candidates_excludes(self, profile_store):
        keep, drop = build_profile(), build_profile()
        await profile_store.add(keep)
        await profile_store.add(drop)

        pool = await profile_store.list_candidates({drop.id})
        assert [p.id for p in pool] == [keep.id]


class TestInMemoryConversationStore:

    @pytest.mark.asyncio
    async def test_match_pair_is_sorted(self, conversation_store):
        x, y = uuid.uuid4(), uuid.uuid4()
        match = await conversation_store.create_match(x, y)
        assert (match.user_a_id, match.user_b_id) == tuple(sorted((x, y)))
        assert (await conversation_store.get_match_by_pair(y, x)).id == match.id

    @pytest.mark.asyncio
    async def test_self_pair_rejected(self, conversation_store):
        x = uuid.uuid4()
        with pytest.raises(ValueError):
            await conversation_store.create_match(x, x)

    @pytest.mark.asyncio
    async def test_last_message_only_moves_forward(self, conversation_store):
        x, y = uuid.uuid4(), uuid.uuid4()
        match = await conversation_store.create_match(x, y)
        now = datetime.now(timezone.utc)

        first = await conversation_store.insert_message(
            match_id=match.id, sender_id=x, receiver_id=y, text="one",
            is_system=False, created_at=now,
        )
        second = await conversation_store.insert_message(
            match_id=match.id, sender_id=y, receiver_id=x, text="two",
            is_system=False, created_at=now + timedelta(seconds=1),
        )

        assert await conversation_store.update_last_message(match.id, second) is True
        assert await conversation_store.update_last_message(match.id, first) is False
        stored = await conversation_store.get_match(match.id)
        assert stored.last_message.text == "two"
