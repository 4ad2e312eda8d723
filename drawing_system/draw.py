"""
Drawing Logic
Per-channel drawing state machine and ticket-weighted winner selection
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .exceptions import (
    AlreadyEntered,
    AlreadyOpen,
    InvalidCount,
    NoOpenDrawing,
    PoolExhausted,
    UnknownWinner,
)

logger = logging.getLogger(__name__)

_system_random = secrets.SystemRandom()


def select_winners(pool, count, rng=None):
    """
    Draw up to `count` unique winners from a weighted entry pool

    Each entry row is one ticket, so an identity holding 3 rows is 3x as likely
    to be picked. Once an identity is picked every one of its rows leaves the
    pool, so it can never be picked twice.

    Args:
        pool: Sequence of identities, one item per ticket
        count: Maximum number of winners to draw
        rng: random.Random-like object (defaults to a SystemRandom)

    Returns:
        tuple: (winners, residual_pool)
    """
    rng = rng or _system_random
    remaining = list(pool)
    winners = []

    while len(winners) < count and remaining:
        picked = rng.choice(remaining)
        remaining = [identity for identity in remaining if identity != picked]
        winners.append(picked)

    return winners, remaining


class DrawingStatus(Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass
class DrawResult:
    """Outcome of closing a drawing"""

    winners: List[str]
    requested: int
    entrants: int

    @property
    def empty(self):
        return not self.winners


@dataclass
class RerollResult:
    """Outcome of replacing one winner"""

    retracted: str
    replacement: str
    winners: List[str] = field(default_factory=list)


class ChannelDrawing:
    """
    Owns one channel's drawing

    All mutations take the channel lock and hold it across the matching store
    write, so operations on one channel apply strictly in arrival order and a
    failed write leaves the in-memory state untouched.
    """

    def __init__(self, channel, store, announcer=None, rng=None, on_winners_changed=None):
        """
        Args:
            channel: Chat channel
            store: DrawingStore
            announcer: Optional EntriesOpenAnnouncer
            rng: random.Random-like object for draws
            on_winners_changed: Async callable (channel, winners) run under the channel
                lock after every Close and Reroll
        """
        self.channel = channel
        self.store = store
        self.announcer = announcer
        self.rng = rng
        self.on_winners_changed = on_winners_changed
        self.status = DrawingStatus.CLOSED
        self.epoch_id: Optional[str] = None
        self.entries: List[str] = []
        self.winners: List[str] = []
        self._lock = asyncio.Lock()

    async def _winners_changed(self):
        if self.on_winners_changed:
            await self.on_winners_changed(self.channel, list(self.winners))

    @property
    def is_open(self):
        return self.status is DrawingStatus.OPEN

    def entrant_count(self):
        """Number of distinct identities in the pool"""
        return len(set(self.entries))

    def ticket_count(self):
        return len(self.entries)

    async def load(self):
        """Rebuild in-memory state from the store, creating a first epoch if needed"""
        async with self._lock:
            drawing = await asyncio.to_thread(self.store.load_latest_drawing, self.channel)
            if drawing is None:
                drawing = await asyncio.to_thread(self.store.create_epoch, self.channel, False)

            self.epoch_id = drawing['epoch_id']
            self.status = DrawingStatus.OPEN if drawing['open'] else DrawingStatus.CLOSED
            self.entries = await asyncio.to_thread(self.store.load_entries, self.epoch_id)
            self.winners = await asyncio.to_thread(self.store.load_winners, self.epoch_id)

            if self.is_open and self.announcer:
                self.announcer.start(self.channel)

        logger.info(
            f"Loaded drawing for {self.channel}: {self.status.value}, "
            f"{self.entrant_count()} entrants, {len(self.winners)} winners"
        )

    async def open(self, actor):
        """
        Start a new epoch with an empty pool

        Raises:
            AlreadyOpen: If the channel's drawing is already open
        """
        async with self._lock:
            if self.is_open:
                raise AlreadyOpen()

            drawing = await asyncio.to_thread(self.store.create_epoch, self.channel, True, actor)

            self.epoch_id = drawing['epoch_id']
            self.status = DrawingStatus.OPEN
            self.entries = []
            self.winners = []

            if self.announcer:
                self.announcer.start(self.channel)

        logger.info(f"🎟️ Drawing opened in {self.channel} by {actor} (epoch {self.epoch_id})")

    async def enter(self, identity, weight=1):
        """
        Add `weight` tickets for an identity

        Returns:
            int: Tickets added

        Raises:
            NoOpenDrawing: If entries are not being taken
            AlreadyEntered: If the identity already holds tickets this epoch
        """
        if weight < 1:
            raise ValueError(f"weight must be positive, got {weight}")

        async with self._lock:
            if not self.is_open:
                raise NoOpenDrawing()
            if identity in self.entries:
                raise AlreadyEntered()

            await asyncio.to_thread(self.store.add_entries, self.epoch_id, identity, weight)
            self.entries.extend([identity] * weight)

        logger.info(f"{identity} entered {self.channel} with {weight} ticket(s)")
        return weight

    async def quit(self, identity):
        """
        Withdraw all of an identity's tickets (no-op if it has none)

        Returns:
            int: Tickets removed
        """
        async with self._lock:
            if identity not in self.entries:
                return 0

            await asyncio.to_thread(self.store.remove_entries, self.epoch_id, identity)
            removed = self.entries.count(identity)
            self.entries = [entry for entry in self.entries if entry != identity]

        logger.info(f"{identity} left the drawing in {self.channel} ({removed} ticket(s))")
        return removed

    async def close(self, actor, count):
        """
        Stop taking entries and draw up to `count` winners

        Raises:
            NoOpenDrawing: If the drawing is already closed
            InvalidCount: If count is not a positive integer
        """
        async with self._lock:
            if not self.is_open:
                raise NoOpenDrawing()
            if isinstance(count, bool) or not isinstance(count, int) or count < 1:
                raise InvalidCount()

            entrants = self.entrant_count()
            winners, residual = select_winners(self.entries, count, self.rng)

            await asyncio.to_thread(self.store.commit_close, self.epoch_id, self.channel, winners)

            self.status = DrawingStatus.CLOSED
            self.entries = residual
            self.winners = winners

            if self.announcer:
                self.announcer.stop(self.channel)

            await self._winners_changed()

        logger.info(
            f"🎉 Drawing closed in {self.channel} by {actor}: "
            f"{len(winners)}/{count} winner(s) from {entrants} entrant(s) {winners}"
        )
        return DrawResult(winners=list(winners), requested=count, entrants=entrants)

    async def reroll(self, actor, prior_winner):
        """
        Replace one winner with a fresh pick from the remaining pool

        Raises:
            UnknownWinner: If prior_winner is not a current winner
            PoolExhausted: If nobody is left to draw (nothing changes)
        """
        async with self._lock:
            if prior_winner not in self.winners:
                raise UnknownWinner()
            if not self.entries:
                raise PoolExhausted()

            picked, residual = select_winners(self.entries, 1, self.rng)
            replacement = picked[0]

            await asyncio.to_thread(
                self.store.commit_reroll, self.epoch_id, self.channel, prior_winner, replacement
            )

            self.winners[self.winners.index(prior_winner)] = replacement
            self.entries = residual

            await self._winners_changed()

        logger.info(f"🔁 {actor} rerolled {prior_winner} in {self.channel}: new winner {replacement}")
        return RerollResult(retracted=prior_winner, replacement=replacement, winners=list(self.winners))


class DrawingRegistry:
    """Channel-keyed registry of ChannelDrawing objects, built once at startup"""

    def __init__(self, store, channels, announcer=None, rng=None, on_winners_changed=None):
        self.store = store
        self._drawings = {
            channel: ChannelDrawing(
                channel, store, announcer=announcer, rng=rng, on_winners_changed=on_winners_changed
            )
            for channel in channels
        }

    async def load(self):
        """Load every configured channel's drawing from the store"""
        await asyncio.gather(*(drawing.load() for drawing in self._drawings.values()))
        logger.info(f"✅ Loaded {len(self._drawings)} channel drawing(s)")

    def get(self, channel):
        """Get a channel's drawing (KeyError for unconfigured channels)"""
        return self._drawings[channel]

    def __contains__(self, channel):
        return channel in self._drawings

    def __iter__(self):
        return iter(self._drawings.values())

    @property
    def channels(self):
        return list(self._drawings)
