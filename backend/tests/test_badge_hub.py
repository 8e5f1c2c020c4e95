"""
backend/tests/test_badge_hub.py
Badge notification hub tests.
"""

import pytest

from backend.features.badges.catalog import default_catalog
from backend.models.badge import BadgeState, BadgeProgress, BadgeView
from backend.realtime.hub import BadgeHub, ConnectionNotifier, badge_earned_message


class MockWS:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


class DeadWS:
    async def send_json(self, data):
        raise RuntimeError("Connection lost")


@pytest.fixture
def hub():
    return BadgeHub()


@pytest.fixture
def earned_view():
    definition = default_catalog.get("teamwork_champ")
    state = BadgeState(badge_id=definition.id, earned=True, progress=BadgeProgress(current=1, target=1))
    return BadgeView.build(definition, state)


class TestBadgeHub:
    @pytest.mark.asyncio
    async def test_register_and_unregister(self, hub):
        ws = MockWS()
        await hub.register("u1", ws)
        assert await hub.get_room_size("u1") == 1

        await hub.unregister("u1", ws)
        assert await hub.get_room_size("u1") == 0

    @pytest.mark.asyncio
    async def test_unregister_unknown_room_is_noop(self, hub):
        await hub.unregister("nobody", MockWS())
        assert await hub.get_room_size("nobody") == 0

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_socket_in_room(self, hub):
        ws1, ws2, outsider = MockWS(), MockWS(), MockWS()
        await hub.register("u1", ws1)
        await hub.register("u1", ws2)
        await hub.register("u2", outsider)

        delivered = await hub.broadcast("u1", {"type": "test"})

        assert delivered == 2
        assert ws1.messages == ws2.messages == [{"type": "test"}]
        assert outsider.messages == []

    @pytest.mark.asyncio
    async def test_broadcast_prunes_dead_sockets(self, hub):
        good = MockWS()
        await hub.register("u1", DeadWS())
        await hub.register("u1", good)

        assert await hub.broadcast("u1", {"type": "test"}) == 1
        assert await hub.get_room_size("u1") == 1
        assert len(good.messages) == 1

    @pytest.mark.asyncio
    async def test_broadcast_to_empty_room(self, hub):
        assert await hub.broadcast("nobody", {"type": "test"}) == 0

    @pytest.mark.asyncio
    async def test_notify_badge_earned_targets_user_room(self, hub, earned_view):
        ws = MockWS()
        await hub.register("u1", ws)

        await hub.notify_badge_earned("u1", earned_view)
        await hub.notify_badge_earned(None, earned_view)

        assert len(ws.messages) == 1
        assert ws.messages[0]["type"] == "badge.earned"
        assert ws.messages[0]["badge"]["id"] == "teamwork_champ"


@pytest.mark.asyncio
async def test_connection_notifier_sends_directly(earned_view):
    ws = MockWS()
    await ConnectionNotifier(ws).notify_badge_earned(None, earned_view)
    assert ws.messages == [badge_earned_message(earned_view)]


def test_earned_message_shape(earned_view):
    message = badge_earned_message(earned_view)
    assert message["title"] == "🎉 Achievement Unlocked!"
    assert message["message"] == "You've earned the Teamwork Champ badge!"
    assert message["badge"]["progress"] == {"current": 1, "target": 1}
    assert message["badge"]["rarity"] == "common"
