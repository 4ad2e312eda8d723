"""
Entries-open announcer
Periodically reminds a channel that its drawing is taking entries
"""

import logging

from discord.ext import tasks

from .config import ENTRIES_OPEN_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "🎟️ The drawing is open! Type !play <Steam profile link> to enter, !quit to leave."


class EntriesOpenAnnouncer:
    """One tasks.Loop per open channel, cancelled when the drawing closes"""

    def __init__(self, say, interval=ENTRIES_OPEN_INTERVAL, message=DEFAULT_MESSAGE, wait_until_ready=None):
        """
        Args:
            say: Async callable (channel, text) that posts to a chat channel
            interval: Seconds between notices
            message: Notice text
            wait_until_ready: Optional coroutine function awaited before the first notice
                (bot.wait_until_ready)
        """
        self.say = say
        self.interval = interval
        self.message = message
        self.wait_until_ready = wait_until_ready
        self._loops = {}

    def is_running(self, channel):
        return channel in self._loops

    def start(self, channel):
        """Start announcing in a channel (no-op if already running)"""
        if self.is_running(channel):
            return

        @tasks.loop(seconds=self.interval)
        async def announce():
            # The first tick lands on the open announcement itself
            if announce.current_loop == 0:
                return
            await self._send(channel)

        @announce.before_loop
        async def before_announce():
            if self.wait_until_ready:
                await self.wait_until_ready()

        self._loops[channel] = announce
        announce.start()
        logger.debug(f"Entries-open notices started for {channel} (every {self.interval}s)")

    def stop(self, channel):
        loop = self._loops.pop(channel, None)
        if loop:
            loop.cancel()
            logger.debug(f"Entries-open notices stopped for {channel}")

    def stop_all(self):
        for channel in list(self._loops):
            self.stop(channel)

    async def _send(self, channel):
        try:
            await self.say(channel, self.message)
        except Exception as e:
            logger.error(f"Failed to send entries-open notice to {channel}: {e}")
