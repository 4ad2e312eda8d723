"""Tests for identity resolution and weighted entry"""

import pytest

from drawing_system.exceptions import NoOpenDrawing, NoProfileOnFile, ResolutionFailed
from drawing_system.identity import IdentityResolver

from tests.conftest import CHANNEL, steam_id

LINK = "https://steamcommunity.com/id/user1"


@pytest.fixture
def resolver(store, registry, lookup):
    return IdentityResolver(store, registry, lookup, multiplier=3)


async def test_link_is_resolved_stored_and_entered(resolver, store, drawing, lookup):
    await drawing.open("mod")

    result = await resolver.resolve_and_enter(CHANNEL, "alice", LINK)

    assert result.external_identity == steam_id(1)
    assert result.weight == 1
    assert lookup.calls == [LINK]
    assert store.get_external_identity("alice") == steam_id(1)
    assert drawing.entries == ["alice"]


async def test_privileged_entrant_gets_multiplier(resolver, drawing):
    await drawing.open("mod")

    result = await resolver.resolve_and_enter(CHANNEL, "alice", LINK, is_privileged=True)

    assert result.weight == 3
    assert drawing.entries == ["alice"] * 3


async def test_stored_mapping_is_used_without_link(resolver, store, drawing, lookup):
    await drawing.open("mod")
    store.upsert_identity("alice", steam_id(5))

    result = await resolver.resolve_and_enter(CHANNEL, "alice")

    assert result.external_identity == steam_id(5)
    assert lookup.calls == []


async def test_no_link_and_nothing_on_file(resolver, drawing):
    await drawing.open("mod")

    with pytest.raises(NoProfileOnFile):
        await resolver.resolve_and_enter(CHANNEL, "alice")

    assert drawing.entries == []


async def test_failed_lookup_changes_nothing(resolver, store, drawing):
    await drawing.open("mod")
    store.upsert_identity("alice", steam_id(5))

    with pytest.raises(ResolutionFailed):
        await resolver.resolve_and_enter(CHANNEL, "alice", "https://steamcommunity.com/id/missing")

    assert store.get_external_identity("alice") == steam_id(5)
    assert drawing.entries == []


async def test_mapping_is_kept_when_drawing_is_closed(resolver, store, drawing):
    with pytest.raises(NoOpenDrawing):
        await resolver.resolve_and_enter(CHANNEL, "alice", LINK)

    assert store.get_external_identity("alice") == steam_id(1)
    assert drawing.entries == []


async def test_unknown_channel(resolver, lookup):
    with pytest.raises(KeyError):
        await resolver.resolve_and_enter("9999", "alice", LINK)
    assert lookup.calls == []


def test_weight_for(resolver):
    assert resolver.weight_for(False) == 1
    assert resolver.weight_for(True) == 3
