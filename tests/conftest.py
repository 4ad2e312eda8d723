"""Pytest configuration and fixtures."""

import random

import pytest
from sqlalchemy import create_engine

from drawing_system.database import setup_drawing_database
from drawing_system.draw import DrawingRegistry
from drawing_system.exceptions import ResolutionFailed, RoomJoinFailed
from drawing_system.store import DrawingStore

CHANNEL = "1001"
OTHER_CHANNEL = "1002"
ROOM = "room-1"
MAIN_MEMBER = "76561190000000001"
BOT_ID = "76561190000000999"


def steam_id(n):
    """Fake SteamID64 for test identity number n"""
    return f"765611980000{n:05d}"


class FakeChat:
    """Records everything said and whispered"""

    def __init__(self):
        self.said = []
        self.whispers = []
        self.gate = None

    def mention(self, identity):
        return f"@{identity}"

    async def say(self, channel, text):
        # A set gate holds the message back like a slow chat send
        gate = self.gate
        if gate is not None:
            await gate.wait()
        self.said.append((channel, text))

    async def whisper(self, identity, text):
        self.whispers.append((identity, text))

    def whispers_to(self, identity):
        return [text for who, text in self.whispers if who == identity]


class FakeRoomTransport:
    """Records join/kick requests instead of talking to a room"""

    def __init__(self):
        self.joins = []
        self.kicks = []
        self.fail_join = False
        self.fail_kick = False

    async def join_room(self, room_id):
        if self.fail_join:
            raise RoomJoinFailed(f"bridge down for {room_id}")
        self.joins.append(room_id)

    async def kick(self, room_id, member_id):
        if self.fail_kick:
            raise ConnectionError("bridge down")
        self.kicks.append((room_id, member_id))

    def kicked(self):
        return [member for _, member in self.kicks]


class FakeLookup:
    """Profile lookup backed by a dict of link -> external id"""

    def __init__(self, profiles=None):
        self.profiles = dict(profiles or {})
        self.calls = []

    async def resolve(self, profile_link):
        self.calls.append(profile_link)
        if profile_link not in self.profiles:
            raise ResolutionFailed(f"no such profile: {profile_link}")
        return self.profiles[profile_link]


class FakeReconciler:
    def __init__(self):
        self.calls = []

    async def winners_changed(self, channel, winners):
        self.calls.append((channel, list(winners)))


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so to_thread workers each get their own connection"""
    engine = create_engine(f"sqlite:///{tmp_path / 'drawings.db'}")
    assert setup_drawing_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return DrawingStore(engine)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def transport():
    return FakeRoomTransport()


@pytest.fixture
def lookup():
    return FakeLookup({f"https://steamcommunity.com/id/user{n}": steam_id(n) for n in range(1, 10)})


@pytest.fixture
async def registry(store, rng):
    registry = DrawingRegistry(store, [CHANNEL, OTHER_CHANNEL], rng=rng)
    await registry.load()
    return registry


@pytest.fixture
def drawing(registry):
    return registry.get(CHANNEL)
