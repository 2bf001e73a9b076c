"""Unit tests for the presence registry."""
import asyncio
import uuid

import pytest

from app.realtime.presence import PresenceRegistry


@pytest.fixture
async def presence():
    registry = PresenceRegistry()
    await registry.start()
    yield registry
    await registry.stop()


class TestPresenceRegistry:

    @pytest.mark.asyncio
    async def test_first_connection_flag(self, presence):
        user = uuid.uuid4()
        assert await presence.register(user, "sid-1") is True
        assert await presence.register(user, "sid-2") is False
        assert presence.connections(user) == {"sid-1", "sid-2"}
        assert presence.is_online(user)

    @pytest.mark.asyncio
    async def test_last_disconnect_releases_user(self, presence):
        user = uuid.uuid4()
        await presence.register(user, "sid-1")
        await presence.register(user, "sid-2")
        await presence.join_room("sid-2", "match:1")

        assert await presence.unregister("sid-1") == (user, False, set())
        assert presence.is_online(user)

        assert await presence.unregister("sid-2") == (user, True, {"match:1"})
        assert not presence.is_online(user)
        assert presence.user_for("sid-2") is None

    @pytest.mark.asyncio
    async def test_unknown_sid(self, presence):
        assert await presence.unregister("ghost") == (None, False, set())

    @pytest.mark.asyncio
    async def test_join_room_ignores_unregistered_sid(self, presence):
        await presence.join_room("ghost", "match:1")
        assert presence.rooms_for("ghost") == set()

    @pytest.mark.asyncio
    async def test_concurrent_register_and_unregister(self, presence):
        user = uuid.uuid4()
        sids = [f"sid-{i}" for i in range(50)]
        await asyncio.gather(*(presence.register(user, sid) for sid in sids))
        results = await asyncio.gather(*(presence.unregister(sid) for sid in sids))

        assert sum(1 for _, last, _ in results if last) == 1
        assert not presence.is_online(user)
        assert presence.online_count == 0

    @pytest.mark.asyncio
    async def test_stop_clears_everything(self):
        registry = PresenceRegistry()
        await registry.start()
        await registry.register(uuid.uuid4(), "sid-1")
        await registry.stop()

        assert registry.online_count == 0
        assert registry.running is False


class FakeRedisCounter:
    """Just the INCR / DECR / DEL surface of ``redis.asyncio.Redis``."""

    def __init__(self):
        self.values = {}

    async def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def decr(self, key):
        self.values[key] = self.values.get(key, 0) - 1
        return self.values[key]

    async def delete(self, key):
        self.values.pop(key, None)
        return 1


class TestSharedCounter:

    @pytest.fixture
    async def instances(self):
        counter = FakeRedisCounter()
        first, second = PresenceRegistry(), PresenceRegistry()
        await first.start(counter=counter)
        await second.start(counter=counter)
        yield first, second, counter
        await first.stop()
        await second.stop()

    @pytest.mark.asyncio
    async def test_user_on_two_instances_goes_offline_once(self, instances):
        first, second, counter = instances
        user = uuid.uuid4()

        assert await first.register(user, "a-1") is True
        assert await second.register(user, "b-1") is False

        assert await first.unregister("a-1") == (user, False, set())
        assert not first.is_online(user)
        assert await second.unregister("b-1") == (user, True, set())
        assert counter.values == {}

    @pytest.mark.asyncio
    async def test_stop_releases_local_connections(self, instances):
        first, second, counter = instances
        user = uuid.uuid4()
        await first.register(user, "a-1")
        await first.register(user, "a-2")
        await second.register(user, "b-1")

        await first.stop()

        assert counter.values == {f"presence:{user}": 1}
        assert await second.unregister("b-1") == (user, True, set())
