"""
Chat Commands for Drawing System
Translates chat command invocations into drawing, identity and room-access calls
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List

import discord
from discord.ext import commands

from utils.error_helpers import command_error_handler, safe_int

from .config import PRIVILEGED_ROLE

logger = logging.getLogger(__name__)

DRAW_USAGE = "Usage: !draw open | !draw close <winners> | !draw reroll <user> | !draw status"


class Permission(IntEnum):
    VIEWER = 0
    PRIVILEGED = 1
    MODERATOR = 2


@dataclass
class CommandInvocation:
    """One inbound chat command"""

    command: str
    identity: str
    permission: Permission
    channel: str
    args: List[str] = field(default_factory=list)

    @property
    def is_privileged(self):
        return self.permission >= Permission.PRIVILEGED


class CommandDispatcher:
    """
    Transport-agnostic command router

    `chat` must provide async say(channel, text), async whisper(identity, text)
    and mention(identity).
    """

    def __init__(self, registry, resolver, chat):
        self.registry = registry
        self.resolver = resolver
        self.chat = chat
        self._handlers = {
            'play': self.handle_play,
            'quit': self.handle_quit,
            'winners': self.handle_winners,
            'draw': self.handle_draw,
        }
        self._draw_handlers = {
            'open': self.handle_draw_open,
            'close': self.handle_draw_close,
            'reroll': self.handle_draw_reroll,
            'status': self.handle_draw_status,
        }

    async def dispatch(self, invocation):
        """
        Run a command

        Returns:
            bool: True if the command was handled
        """
        if invocation.channel not in self.registry:
            logger.debug(f"Ignoring !{invocation.command} from unconfigured channel {invocation.channel}")
            return False

        handler = self._handlers.get(invocation.command.lower())
        if handler is None:
            return False

        await handler(invocation)
        return True

    def _format_winners(self, winners):
        return ", ".join(self.chat.mention(winner) for winner in winners)

    # ========================================
    # USER COMMANDS
    # ========================================

    @command_error_handler
    async def handle_play(self, invocation):
        """
        Enter the drawing
        Usage: !play [steam profile link]
        """
        profile_link = invocation.args[0] if invocation.args else None
        result = await self.resolver.resolve_and_enter(
            invocation.channel, invocation.identity, profile_link, invocation.is_privileged
        )
        await self.chat.whisper(
            invocation.identity,
            f"✅ You're in the drawing with {result.weight} ticket(s). Good luck!"
        )

    @command_error_handler
    async def handle_quit(self, invocation):
        """
        Leave the drawing
        Usage: !quit
        """
        removed = await self.registry.get(invocation.channel).quit(invocation.identity)
        if removed:
            await self.chat.whisper(invocation.identity, "👋 You left the drawing.")
        else:
            await self.chat.whisper(invocation.identity, "You weren't entered in the drawing.")

    @command_error_handler
    async def handle_winners(self, invocation):
        """
        Show the current winners
        Usage: !winners
        """
        drawing = self.registry.get(invocation.channel)

        if drawing.is_open:
            await self.chat.say(invocation.channel, "🎟️ The drawing is still open, winners are drawn when it closes.")
        elif not drawing.winners:
            await self.chat.say(invocation.channel, "No winners have been drawn yet.")
        else:
            await self.chat.say(invocation.channel, f"🏆 Current winners: {self._format_winners(drawing.winners)}")

    # ========================================
    # MODERATOR COMMANDS
    # ========================================

    async def handle_draw(self, invocation):
        """
        [MOD] Run the drawing
        Usage: !draw open | close <n> | reroll <user> | status
        """
        if invocation.permission < Permission.MODERATOR:
            await self.chat.whisper(invocation.identity, "❌ Only moderators can run the drawing.")
            return

        if not invocation.args:
            await self.chat.whisper(invocation.identity, DRAW_USAGE)
            return

        handler = self._draw_handlers.get(invocation.args[0].lower())
        if handler is None:
            await self.chat.whisper(invocation.identity, DRAW_USAGE)
            return

        await handler(invocation, invocation.args[1:])

    @command_error_handler
    async def handle_draw_open(self, invocation, args):
        await self.registry.get(invocation.channel).open(invocation.identity)
        await self.chat.say(
            invocation.channel,
            "🎟️ A new drawing is open! Type !play <Steam profile link> to enter."
        )

    @command_error_handler
    async def handle_draw_close(self, invocation, args):
        # Unparseable counts go through as-is so an already-closed drawing reports that first
        raw = args[0] if args else None
        count = safe_int(raw, default=raw)

        result = await self.registry.get(invocation.channel).close(invocation.identity, count)

        if result.empty:
            await self.chat.say(invocation.channel, "The drawing is closed. Nobody entered, so there are no winners.")
        else:
            await self.chat.say(
                invocation.channel,
                f"🎉 The drawing is closed! Winners: {self._format_winners(result.winners)}"
            )
            if len(result.winners) < result.requested:
                logger.info(
                    f"Only {len(result.winners)} of {result.requested} winners drawn in {invocation.channel}"
                )

    @command_error_handler
    async def handle_draw_reroll(self, invocation, args):
        if not args:
            await self.chat.whisper(invocation.identity, DRAW_USAGE)
            return

        result = await self.registry.get(invocation.channel).reroll(invocation.identity, args[0])

        await self.chat.say(
            invocation.channel,
            f"🔁 {self.chat.mention(result.retracted)} was rerolled. "
            f"New winner: {self.chat.mention(result.replacement)}"
        )

    @command_error_handler
    async def handle_draw_status(self, invocation, args):
        drawing = self.registry.get(invocation.channel)
        await self.chat.whisper(
            invocation.identity,
            f"Drawing is {drawing.status.value}: {drawing.entrant_count()} entrant(s), "
            f"{drawing.ticket_count()} ticket(s), {len(drawing.winners)} winner(s)."
        )


class DrawingCommands(commands.Cog):
    """Discord commands for the drawing - feeds the CommandDispatcher"""

    def __init__(self, bot, dispatcher, privileged_role=PRIVILEGED_ROLE):
        self.bot = bot
        self.dispatcher = dispatcher
        self.privileged_role = privileged_role

    def _permission(self, member):
        permissions = getattr(member, 'guild_permissions', None)
        if permissions and (permissions.manage_guild or permissions.administrator):
            return Permission.MODERATOR
        if any(role.name == self.privileged_role for role in getattr(member, 'roles', [])):
            return Permission.PRIVILEGED
        return Permission.VIEWER

    async def _dispatch(self, ctx, command, *args):
        invocation = CommandInvocation(
            command=command,
            identity=str(ctx.author.id),
            permission=self._permission(ctx.author),
            channel=str(ctx.channel.id),
            args=[str(arg) for arg in args if arg is not None],
        )
        await self.dispatcher.dispatch(invocation)

    @commands.command(name='play', aliases=['enter'])
    async def cmd_play(self, ctx, profile_link: str = None):
        """
        Enter the drawing
        Usage: !play [steam profile link]
        """
        await self._dispatch(ctx, 'play', profile_link)

    @commands.command(name='quit', aliases=['leave'])
    async def cmd_quit(self, ctx):
        """
        Leave the drawing
        Usage: !quit
        """
        await self._dispatch(ctx, 'quit')

    @commands.command(name='winners')
    async def cmd_winners(self, ctx):
        """Show the current winners"""
        await self._dispatch(ctx, 'winners')

    @commands.group(name='draw', invoke_without_command=True)
    async def cmd_draw(self, ctx):
        """
        [MOD] Run the drawing
        Usage: !draw open | close <n> | reroll <user> | status
        """
        await self._dispatch(ctx, 'draw')

    @cmd_draw.command(name='open')
    async def cmd_draw_open(self, ctx):
        await self._dispatch(ctx, 'draw', 'open')

    @cmd_draw.command(name='close')
    async def cmd_draw_close(self, ctx, count: str = None):
        await self._dispatch(ctx, 'draw', 'close', count)

    @cmd_draw.command(name='reroll')
    async def cmd_draw_reroll(self, ctx, user: discord.User):
        await self._dispatch(ctx, 'draw', 'reroll', user.id)

    @cmd_draw.command(name='status')
    async def cmd_draw_status(self, ctx):
        await self._dispatch(ctx, 'draw', 'status')


async def setup(bot, dispatcher):
    """Setup function to add cog to bot"""
    await bot.add_cog(DrawingCommands(bot, dispatcher))
    logger.info("✅ Drawing commands loaded")
