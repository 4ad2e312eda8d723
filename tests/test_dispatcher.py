"""Tests for chat command dispatch"""

import pytest

from drawing_system.commands import DRAW_USAGE, CommandDispatcher, CommandInvocation, Permission
from drawing_system.draw import DrawingRegistry
from drawing_system.identity import IdentityResolver

from tests.conftest import CHANNEL, FakeReconciler

LINK = "https://steamcommunity.com/id/user{}"


@pytest.fixture
def reconciler():
    return FakeReconciler()


@pytest.fixture
async def registry(store, rng, reconciler):
    registry = DrawingRegistry(store, [CHANNEL], rng=rng, on_winners_changed=reconciler.winners_changed)
    await registry.load()
    return registry


@pytest.fixture
def dispatcher(store, registry, lookup, chat):
    resolver = IdentityResolver(store, registry, lookup, multiplier=3)
    return CommandDispatcher(registry, resolver, chat)


def invocation(command, identity="viewer", permission=Permission.VIEWER, *args, channel=CHANNEL):
    return CommandInvocation(command, identity, permission, channel, list(args))


def mod(*args):
    return invocation("draw", "mod", Permission.MODERATOR, *args)


async def play(dispatcher, identity, n, permission=Permission.VIEWER):
    await dispatcher.dispatch(invocation("play", identity, permission, LINK.format(n)))


async def test_unconfigured_channel_is_ignored(dispatcher, chat):
    handled = await dispatcher.dispatch(invocation("play", channel="9999"))

    assert handled is False
    assert chat.said == [] and chat.whispers == []


async def test_unknown_command_is_not_handled(dispatcher):
    assert await dispatcher.dispatch(invocation("dance")) is False


async def test_viewer_cannot_run_the_drawing(dispatcher, chat, drawing):
    await dispatcher.dispatch(invocation("draw", "viewer", Permission.PRIVILEGED, "open"))

    assert not drawing.is_open
    assert chat.whispers_to("viewer") == ["❌ Only moderators can run the drawing."]


async def test_draw_without_subcommand_shows_usage(dispatcher, chat):
    await dispatcher.dispatch(mod())
    await dispatcher.dispatch(mod("shuffle"))

    assert chat.whispers_to("mod") == [DRAW_USAGE, DRAW_USAGE]


async def test_open_announces(dispatcher, chat, drawing):
    await dispatcher.dispatch(mod("open"))

    assert drawing.is_open
    assert chat.said == [(CHANNEL, "🎟️ A new drawing is open! Type !play <Steam profile link> to enter.")]


async def test_open_twice_whispers_notice(dispatcher, chat):
    await dispatcher.dispatch(mod("open"))
    await dispatcher.dispatch(mod("open"))

    assert chat.whispers_to("mod") == ["❌ A drawing is already open in this channel."]


async def test_play_confirms_ticket_count(dispatcher, chat, drawing):
    await dispatcher.dispatch(mod("open"))

    await play(dispatcher, "alice", 1)
    await play(dispatcher, "bob", 2, Permission.PRIVILEGED)

    assert chat.whispers_to("alice") == ["✅ You're in the drawing with 1 ticket(s). Good luck!"]
    assert chat.whispers_to("bob") == ["✅ You're in the drawing with 3 ticket(s). Good luck!"]
    assert drawing.ticket_count() == 4


async def test_play_while_closed(dispatcher, chat):
    await play(dispatcher, "alice", 1)

    assert chat.whispers_to("alice") == ["❌ There is no open drawing in this channel."]


async def test_play_with_bad_profile_link(dispatcher, chat, drawing):
    await dispatcher.dispatch(mod("open"))

    await dispatcher.dispatch(invocation("play", "alice", Permission.VIEWER, "https://steamcommunity.com/id/nope"))

    assert chat.whispers_to("alice") == ["⚠️ Couldn't look up that Steam profile. Check the link and try again."]
    assert drawing.entries == []


async def test_quit(dispatcher, chat, drawing):
    await dispatcher.dispatch(mod("open"))
    await play(dispatcher, "alice", 1)

    await dispatcher.dispatch(invocation("quit", "alice"))
    await dispatcher.dispatch(invocation("quit", "alice"))

    assert chat.whispers_to("alice")[1:] == ["👋 You left the drawing.", "You weren't entered in the drawing."]
    assert drawing.entries == []


async def test_close_with_bad_count(dispatcher, chat, reconciler):
    await dispatcher.dispatch(mod("close", "abc"))
    await dispatcher.dispatch(mod("open"))
    await dispatcher.dispatch(mod("close", "abc"))
    await dispatcher.dispatch(mod("close"))

    assert chat.whispers_to("mod") == [
        "❌ There is no open drawing in this channel.",
        "❌ The number of winners must be a positive whole number.",
        "❌ The number of winners must be a positive whole number.",
    ]
    assert reconciler.calls == []


async def test_close_announces_winners_and_updates_room(dispatcher, chat, reconciler, drawing):
    await dispatcher.dispatch(mod("open"))
    await play(dispatcher, "alice", 1)
    await play(dispatcher, "bob", 2)

    await dispatcher.dispatch(mod("close", "5"))

    winners = drawing.winners
    assert sorted(winners) == ["alice", "bob"]
    assert chat.said[-1] == (CHANNEL, f"🎉 The drawing is closed! Winners: @{winners[0]}, @{winners[1]}")
    assert reconciler.calls == [(CHANNEL, winners)]


async def test_close_with_no_entrants_clears_room(dispatcher, chat, reconciler):
    await dispatcher.dispatch(mod("open"))

    await dispatcher.dispatch(mod("close", "2"))

    assert chat.said[-1] == (CHANNEL, "The drawing is closed. Nobody entered, so there are no winners.")
    assert reconciler.calls == [(CHANNEL, [])]


async def test_reroll_announces_replacement(dispatcher, chat, reconciler, drawing):
    await dispatcher.dispatch(mod("open"))
    await play(dispatcher, "alice", 1)
    await play(dispatcher, "bob", 2)
    await dispatcher.dispatch(mod("close", "1"))
    first = drawing.winners[0]
    second = "bob" if first == "alice" else "alice"

    await dispatcher.dispatch(mod("reroll", first))

    assert chat.said[-1] == (CHANNEL, f"🔁 @{first} was rerolled. New winner: @{second}")
    assert reconciler.calls[-1] == (CHANNEL, [second])


async def test_reroll_of_non_winner(dispatcher, chat, reconciler):
    await dispatcher.dispatch(mod("open"))
    await play(dispatcher, "alice", 1)
    await dispatcher.dispatch(mod("close", "1"))

    await dispatcher.dispatch(mod("reroll", "mallory"))
    await dispatcher.dispatch(mod("reroll"))

    assert chat.whispers_to("mod") == ["❌ That user is not one of the current winners.", DRAW_USAGE]
    assert len(reconciler.calls) == 1


async def test_winners_command(dispatcher, chat, drawing):
    await dispatcher.dispatch(invocation("winners"))
    await dispatcher.dispatch(mod("open"))
    await dispatcher.dispatch(invocation("winners"))
    await play(dispatcher, "alice", 1)
    await dispatcher.dispatch(mod("close", "1"))
    await dispatcher.dispatch(invocation("winners"))

    said = [text for _, text in chat.said]
    assert "No winners have been drawn yet." in said
    assert "🎟️ The drawing is still open, winners are drawn when it closes." in said
    assert said[-1] == "🏆 Current winners: @alice"


async def test_status(dispatcher, chat):
    await dispatcher.dispatch(mod("open"))
    await play(dispatcher, "alice", 1, Permission.PRIVILEGED)

    await dispatcher.dispatch(mod("status"))

    assert chat.whispers_to("mod")[-1] == "Drawing is open: 1 entrant(s), 3 ticket(s), 0 winner(s)."


async def test_unexpected_error_is_whispered(dispatcher, chat, drawing, monkeypatch):
    async def explode(identity):
        raise RuntimeError("boom")

    monkeypatch.setattr(drawing, "quit", explode)

    await dispatcher.dispatch(invocation("quit", "alice"))

    assert chat.whispers_to("alice") == ["❌ Unexpected error while running that command."]
