"""Tests for the Redis room bridge"""

import json

import pytest
import redis

from core.room_bridge import RedisRoomBridge, decode_event
from drawing_system.exceptions import RoomJoinFailed
from room_access import MemberChange, MemberStateChanged, RoomJoined


class FakeRedis:
    def __init__(self, fail=False):
        self.published = []
        self.fail = fail

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.published.append((channel, json.loads(message)))
        return 1


@pytest.fixture
def bridge(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    bridge = RedisRoomBridge(commands_channel="test:commands", events_channel="test:events")
    bridge.client = FakeRedis()
    bridge.enabled = True
    return bridge


def test_decode_room_joined():
    event = decode_event({
        'action': 'room_joined',
        'data': {'room_id': 'room-1', 'result': 1, 'members': ['76561190000000001', 7656119]},
    })

    assert event == RoomJoined('room-1', 1, ('76561190000000001', '7656119'))
    assert event.succeeded


def test_decode_member_state_changed():
    event = decode_event({
        'action': 'member_state_changed',
        'data': {'kind': 'Entered', 'member_id': '765', 'room_id': 'room-1'},
    })

    assert event == MemberStateChanged(MemberChange.ENTERED, '765', 'room-1')


def test_decode_member_state_with_actor():
    event = decode_event({
        'action': 'member_state_changed',
        'data': {'kind': 'kicked', 'member_id': '765', 'room_id': 'room-1', 'actor_id': 42},
    })

    assert event.kind is MemberChange.KICKED
    assert event.kind.departs
    assert event.actor_id == '42'


def test_decode_ignores_other_actions():
    assert decode_event({'action': 'heartbeat', 'data': {}}) is None


@pytest.mark.parametrize("payload", [
    {'action': 'room_joined', 'data': {'room_id': 'room-1'}},
    {'action': 'member_state_changed', 'data': {'kind': 'teleported', 'member_id': '1', 'room_id': 'r'}},
    {'action': 'member_state_changed', 'data': None},
])
def test_decode_rejects_malformed_events(payload):
    with pytest.raises(ValueError):
        decode_event(payload)


async def test_kick_and_join_are_published(bridge):
    await bridge.join_room('room-1')
    await bridge.kick('room-1', '765')

    assert bridge.client.published == [
        ('test:commands', {'action': 'join', 'data': {'room_id': 'room-1'}}),
        ('test:commands', {'action': 'kick', 'data': {'room_id': 'room-1', 'member_id': '765'}}),
    ]


async def test_join_failure_raises_room_join_failed(bridge):
    bridge.client = FakeRedis(fail=True)

    with pytest.raises(RoomJoinFailed):
        await bridge.join_room('room-1')


async def test_disabled_bridge_only_logs(monkeypatch, caplog):
    monkeypatch.delenv("REDIS_URL", raising=False)
    bridge = RedisRoomBridge()

    assert bridge.enabled is False
    await bridge.kick('room-1', '765')
    await bridge.listen(lambda event: None)

    assert "not sending kick" in caplog.text


class FakePubSub:
    def __init__(self):
        self.channels = []

    def subscribe(self, channel):
        self.channels.append(channel)


async def test_subscribe_happens_once(bridge):
    bridge.pubsub = FakePubSub()

    await bridge.subscribe()
    await bridge.subscribe()

    assert bridge.subscribed
    assert bridge.pubsub.channels == ["test:events"]
