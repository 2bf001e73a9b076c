"""Unit tests for ConversationService — append, fetch and read receipts."""
import asyncio
import uuid

import pytest

from app.errors import (
    InactiveMatchError,
    MessageTooLongError,
    NotAuthorizedError,
    NotMemberError,
    StoreUnavailableError,
    TransientStoreError,
    ValidationError,
)
from app.schemas.message import ConversationMessage
from app.services.conversation_service import ConversationService
from app.utils.locks import KeyedLock
from tests.conftest import RecordingNotifier


class TestAppendMessage:

    @pytest.mark.asyncio
    async def test_persists_unread_with_receiver(self, conversation_service, active_match, stored_pair, notifier):
        alex, bella = stored_pair
        message = await conversation_service.append_message(active_match.id, alex.id, "hi")

        assert message.receiver_id == bella.id
        assert message.sender_id == alex.id
        assert message.is_read is False
        assert message.seq == 2  # the welcome message is seq 1
        assert notifier.messages == [message]

    @pytest.mark.asyncio
    async def test_updates_last_message(self, conversation_service, conversation_store, active_match, stored_pair):
        alex, _ = stored_pair
        await conversation_service.append_message(active_match.id, alex.id, "hi")

        match = await conversation_store.get_match(active_match.id)
        assert match.last_message.text == "hi"
        assert match.last_message.sender_id == alex.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_text_rejected(self, conversation_service, active_match, stored_pair, text):
        alex, _ = stored_pair
        with pytest.raises(ValidationError):
            await conversation_service.append_message(active_match.id, alex.id, text)

    @pytest.mark.asyncio
    async def test_too_long_rejected(self, conversation_service, active_match, stored_pair):
        alex, _ = stored_pair
        with pytest.raises(MessageTooLongError) as excinfo:
            await conversation_service.append_message(active_match.id, alex.id, "x" * 1001)
        assert isinstance(excinfo.value, ValidationError)

    @pytest.mark.asyncio
    async def test_exactly_max_length_accepted(self, conversation_service, active_match, stored_pair):
        alex, _ = stored_pair
        message = await conversation_service.append_message(active_match.id, alex.id, "x" * 1000)
        assert len(message.text) == 1000

    @pytest.mark.asyncio
    async def test_missing_match(self, conversation_service, stored_pair):
        alex, _ = stored_pair
        with pytest.raises(InactiveMatchError):
            await conversation_service.append_message(uuid.uuid4(), alex.id, "hi")

    @pytest.mark.asyncio
    async def test_inactive_match(self, conversation_service, conversation_store, active_match, stored_pair):
        alex, _ = stored_pair
        await conversation_store.set_match_active(active_match.id, False)
        with pytest.raises(InactiveMatchError):
            await conversation_service.append_message(active_match.id, alex.id, "hi")

    @pytest.mark.asyncio
    async def test_non_member(self, conversation_service, active_match):
        with pytest.raises(NotMemberError):
            await conversation_service.append_message(active_match.id, uuid.uuid4(), "hi")

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_unique_order(self, conversation_service, conversation_store, active_match, stored_pair):
        alex, bella = stored_pair
        senders = [alex.id, bella.id] * 10
        await asyncio.gather(
            *(
                conversation_service.append_message(active_match.id, sender, f"msg {i}")
                for i, sender in enumerate(senders)
            )
        )

        messages = await conversation_store.list_messages(active_match.id)
        seqs = [m.seq for m in messages]
        assert seqs == list(range(1, 22))
        match = await conversation_store.get_match(active_match.id)
        assert match.last_message.seq == 21

    @pytest.mark.asyncio
    async def test_broadcast_leaves_under_match_lock_in_seq_order(self, conversation_store, active_match, stored_pair, settings):
        alex, bella = stored_pair
        locks = KeyedLock()

        class SlowNotifier(RecordingNotifier):
            async def message_created(self, message):
                assert message.match_id in locks
                # Yield more for earlier messages so an unlocked emit would reorder
                for _ in range(30 - message.seq):
                    await asyncio.sleep(0)
                await super().message_created(message)

        notifier = SlowNotifier()
        service = ConversationService(conversation_store, notifier=notifier, match_locks=locks, settings=settings)
        senders = [alex.id, bella.id] * 5
        await asyncio.gather(
            *(service.append_message(active_match.id, sender, f"msg {i}") for i, sender in enumerate(senders))
        )

        assert [m.seq for m in notifier.messages] == list(range(2, 12))


class TestTransientRetries:

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, conversation_service, conversation_store, active_match, stored_pair, monkeypatch):
        alex, _ = stored_pair
        original = conversation_store.insert_message
        calls = {"n": 0}

        async def flaky(**kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise TransientStoreError()
            return await original(**kwargs)

        monkeypatch.setattr(conversation_store, "insert_message", flaky)
        message = await conversation_service.append_message(active_match.id, alex.id, "hi")

        assert calls["n"] == 2
        assert message.text == "hi"

    @pytest.mark.asyncio
    async def test_exhausted_retries_surface_as_unavailable(self, conversation_service, conversation_store, active_match, stored_pair, monkeypatch):
        alex, _ = stored_pair

        async def broken(**kwargs):
            raise TransientStoreError()

        monkeypatch.setattr(conversation_store, "insert_message", broken)
        with pytest.raises(StoreUnavailableError):
            await conversation_service.append_message(active_match.id, alex.id, "hi")


class TestListMessages:

    @pytest.mark.asyncio
    async def test_non_member_always_rejected(self, conversation_service, active_match):
        with pytest.raises(NotAuthorizedError):
            await conversation_service.list_messages(active_match.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_missing_match_rejected(self, conversation_service, stored_pair):
        alex, _ = stored_pair
        with pytest.raises(NotAuthorizedError):
            await conversation_service.list_messages(uuid.uuid4(), alex.id)

    @pytest.mark.asyncio
    async def test_members_never_rejected(self, conversation_service, active_match, stored_pair):
        for member in stored_pair:
            await conversation_service.list_messages(active_match.id, member.id)

    @pytest.mark.asyncio
    async def test_marks_only_requesters_messages_read(self, conversation_service, conversation_store, active_match, stored_pair):
        alex, bella = stored_pair
        await conversation_service.append_message(active_match.id, alex.id, "hi")
        await conversation_service.append_message(active_match.id, bella.id, "hey")

        fetched = await conversation_service.list_messages(active_match.id, bella.id)

        by_text = {m.text: m for m in fetched}
        assert by_text["hi"].is_read is True
        assert by_text["hey"].is_read is False

    @pytest.mark.asyncio
    async def test_read_marking_is_idempotent(self, conversation_service, conversation_store, active_match, stored_pair):
        alex, bella = stored_pair
        await conversation_service.append_message(active_match.id, alex.id, "hi")

        first = await conversation_service.list_messages(active_match.id, bella.id)
        marked_again = await conversation_store.mark_read(active_match.id, bella.id)
        second = await conversation_service.list_messages(active_match.id, bella.id)

        assert marked_again == 0
        assert [m.model_dump() for m in first] == [m.model_dump() for m in second]

    @pytest.mark.asyncio
    async def test_ordered_by_seq(self, conversation_service, active_match, stored_pair):
        alex, bella = stored_pair
        for i in range(5):
            sender = alex if i % 2 == 0 else bella
            await conversation_service.append_message(active_match.id, sender.id, f"m{i}")

        fetched = await conversation_service.list_messages(active_match.id, alex.id)
        assert [m.seq for m in fetched] == [1, 2, 3, 4, 5, 6]


class TestEndToEndConversation:

    @pytest.mark.asyncio
    async def test_hi_is_read_by_match_and_shown_to_both(self, conversation_service, active_match, stored_pair):
        alex, bella = stored_pair
        await conversation_service.append_message(active_match.id, alex.id, "hi")

        bella_view = [
            ConversationMessage.for_viewer(m, bella.id)
            for m in await conversation_service.list_messages(active_match.id, bella.id)
        ]
        hi = next(m for m in bella_view if m.text == "hi")
        assert hi.sender == "match"
        assert hi.is_read is True

        alex_view = [
            ConversationMessage.for_viewer(m, alex.id)
            for m in await conversation_service.list_messages(active_match.id, alex.id)
        ]
        hi = next(m for m in alex_view if m.text == "hi")
        assert hi.sender == "user"
        assert hi.is_read is True

        welcome = alex_view[0]
        assert welcome.sender == "system"
        assert welcome.sender_id == "system"
