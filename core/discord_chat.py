"""
Discord chat transport
say/whisper on top of a discord.py bot
"""

import logging

import discord

logger = logging.getLogger(__name__)


class DiscordChatTransport:
    """Posts to channels and DMs users by id"""

    def __init__(self, bot):
        self.bot = bot

    def mention(self, identity):
        return f"<@{identity}>"

    async def say(self, channel, text):
        target = self.bot.get_channel(int(channel)) or await self.bot.fetch_channel(int(channel))
        await target.send(text)

    async def whisper(self, identity, text):
        user = self.bot.get_user(int(identity)) or await self.bot.fetch_user(int(identity))
        try:
            await user.send(text)
        except discord.Forbidden:
            logger.warning(f"Can't DM {identity} (DMs closed), dropped: {text}")
