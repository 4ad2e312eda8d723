"""
Access Reconciliation Engine
Keeps each external room's membership inside the allow-list derived from its
channel's winners
"""

import asyncio
import logging

from drawing_system.config import BOT_EXTERNAL_ID
from drawing_system.exceptions import ConfigurationError, PersistenceError, RoomJoinFailed

from .events import (
    AllowListChanged,
    IdentityChanged,
    JoinRequested,
    MemberChange,
    MemberStateChanged,
    RecomputeRequested,
    RoomJoined,
    WinnersChanged,
)
from .roster import JoinState, RoomRoster, compute_allow_list

logger = logging.getLogger(__name__)

ALLOW_LIST_RETRY_DELAY = 5  # seconds


class RoomActor:
    """
    Serial event stream for one room

    Winner changes, relinks, join results and membership events are all handled
    here in arrival order. Membership events that arrive before the first
    allow-list are parked and replayed, in order, right after it is applied.
    """

    def __init__(self, room_id, transport, store=None, main_member="", bot_identity=BOT_EXTERNAL_ID,
                 channel=None, retry_delay=ALLOW_LIST_RETRY_DELAY):
        """
        Args:
            room_id: External room id
            transport: Object with async join_room(room_id) and kick(room_id, member_id)
            store: DrawingStore used to map winners to external identities
            main_member: External identity that is always allowed
            bot_identity: Our own identity in the room, never kicked
            channel: Chat channel whose winners feed this room (for log lines)
            retry_delay: Seconds before a failed allow-list lookup is retried
        """
        self.room_id = room_id
        self.transport = transport
        self.store = store
        self.bot_identity = bot_identity
        self.channel = channel
        self.retry_delay = retry_delay
        self.roster = RoomRoster(room_id, main_member=main_member)
        self.winners = ()
        self._queue = asyncio.Queue()
        self._backlog = []
        self._worker = None
        self._retry = None

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def stop(self):
        for task in (self._retry, self._worker):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._retry = None
        self._worker = None

    async def submit(self, event):
        await self._queue.put(event)

    async def drain(self):
        """Wait until every submitted event has been handled"""
        await self._queue.join()

    @property
    def backlog_size(self):
        return len(self._backlog)

    @property
    def retry_pending(self):
        return self._retry is not None and not self._retry.done()

    def is_allowed(self, member_id):
        if self.bot_identity and member_id == self.bot_identity:
            return True
        return member_id in self.roster.allow_members

    async def _run(self):
        while True:
            event = await self._queue.get()
            try:
                await self._handle(event)
            except Exception as e:
                logger.error(f"Room {self.room_id}: failed to handle {event}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def _handle(self, event):
        if isinstance(event, WinnersChanged):
            self.winners = tuple(event.winners)
            await self._recompute()
        elif isinstance(event, RecomputeRequested):
            await self._recompute()
        elif isinstance(event, IdentityChanged):
            if event.chat_identity in self.winners:
                logger.info(f"Room {self.room_id}: winner {event.chat_identity} relinked, recomputing allow-list")
                await self._recompute()
        elif isinstance(event, AllowListChanged):
            await self._apply_allow_list(event.allow_list)
        elif isinstance(event, JoinRequested):
            await self._join()
        elif not self.roster.initialized:
            logger.debug(f"Room {self.room_id}: allow-list not loaded yet, parking {event}")
            self._backlog.append(event)
        elif isinstance(event, RoomJoined):
            await self._on_room_joined(event)
        elif isinstance(event, MemberStateChanged):
            await self._on_member_state(event)
        else:
            logger.warning(f"Room {self.room_id}: ignoring unknown event {event!r}")

    async def _recompute(self):
        """Rebuild the allow-list from the current winners and stored mappings"""
        try:
            mapping = await asyncio.to_thread(self.store.get_external_identities, list(self.winners))
        except PersistenceError as e:
            logger.warning(f"Room {self.room_id}: allow-list lookup failed, retrying in {self.retry_delay}s ({e})")
            self._schedule_retry()
            return

        allow_list, missing = compute_allow_list(self.roster.main_member, self.winners, mapping)
        for identity in missing:
            logger.warning(
                f"⚠️ Winner {identity} in {self.channel} has no linked profile; "
                f"cannot admit them to room {self.room_id}"
            )

        await self._apply_allow_list(allow_list)

    def _schedule_retry(self):
        if self.retry_pending:
            return
        self._retry = asyncio.create_task(self._retry_later())

    async def _retry_later(self):
        await asyncio.sleep(self.retry_delay)
        await self.submit(RecomputeRequested(self.room_id))

    async def _join(self):
        self.roster.join_state = JoinState.JOINING
        logger.info(f"Joining room {self.room_id}...")
        try:
            await self.transport.join_room(self.room_id)
        except RoomJoinFailed as e:
            self.roster.join_state = JoinState.FAILED
            logger.error(f"Room {self.room_id}: {e}")

    async def _kick(self, member_id, reason):
        logger.warning(f"🚫 Kicking {member_id} from room {self.room_id} ({reason})")
        try:
            await self.transport.kick(self.room_id, member_id)
        except Exception as e:
            logger.error(f"Room {self.room_id}: kick of {member_id} failed: {e}")

    async def _sweep(self, reason):
        for member_id in sorted(self.roster.present):
            if not self.is_allowed(member_id):
                await self._kick(member_id, reason)

    async def _apply_allow_list(self, allow_list):
        previous = set(self.roster.allow_members)
        self.roster.allow_members = set(allow_list)
        first_load = not self.roster.initialized
        self.roster.initialized = True

        revoked = previous - self.roster.allow_members
        if revoked and not first_load:
            logger.info(f"Room {self.room_id}: access revoked for {sorted(revoked)}")
        logger.info(f"Room {self.room_id}: allow-list now has {len(self.roster.allow_members)} member(s)")

        await self._sweep("not on allow-list")

        if first_load and self._backlog:
            backlog, self._backlog = self._backlog, []
            logger.info(f"Room {self.room_id}: replaying {len(backlog)} parked event(s)")
            for parked in backlog:
                await self._handle(parked)

    async def _on_room_joined(self, event):
        if not event.succeeded:
            self.roster.join_state = JoinState.FAILED
            logger.warning(f"Room {self.room_id}: join rejected with result {event.result}")
            return

        self.roster.join_state = JoinState.JOINED
        self.roster.present = set(event.members)
        logger.info(f"Joined room {self.room_id} ({len(self.roster.present)} member(s) present)")
        await self._sweep("sweep on join")

    async def _on_member_state(self, event):
        kind = event.kind

        if kind is MemberChange.ENTERED:
            self.roster.present.add(event.member_id)
            logger.debug(f"{event.member_id} entered room {self.room_id}")
            if not self.is_allowed(event.member_id):
                await self._kick(event.member_id, "entered without access")
        elif kind.departs:
            self.roster.present.discard(event.member_id)
            by = f" by {event.actor_id}" if event.actor_id else ""
            logger.info(f"{event.member_id} {kind.value} from room {self.room_id}{by}")
        else:
            logger.debug(f"Room {self.room_id}: {event.member_id} {kind.value}")


class AccessReconciler:
    """Routes winners and room events to one RoomActor per configured room"""

    def __init__(self, transport, store, channels, bot_identity=BOT_EXTERNAL_ID, retry_delay=ALLOW_LIST_RETRY_DELAY):
        """
        Args:
            transport: Room transport (join_room / kick)
            store: DrawingStore, for identity mappings and stored winners
            channels: dict channel -> ChannelConfig
            bot_identity: Our own identity in the rooms
            retry_delay: Seconds before a failed allow-list lookup is retried
        """
        self.transport = transport
        self.store = store
        self._room_for_channel = {}
        self._actors = {}

        for config in channels.values():
            if config.room_id in self._actors:
                raise ConfigurationError(f"Room {config.room_id} is assigned to more than one channel")
            self._room_for_channel[config.channel] = config.room_id
            self._actors[config.room_id] = RoomActor(
                config.room_id,
                transport,
                store=store,
                main_member=config.main_member,
                bot_identity=bot_identity,
                channel=config.channel,
                retry_delay=retry_delay,
            )

    def room_for(self, channel):
        return self._room_for_channel.get(channel)

    def actor(self, room_id):
        return self._actors[room_id]

    def roster(self, room_id):
        return self._actors[room_id].roster

    async def start(self, join=True):
        """Start every room actor and ask the transport to join the rooms"""
        for actor in self._actors.values():
            actor.start()
            if join:
                await actor.submit(JoinRequested(actor.room_id))
        logger.info(f"✅ Access reconciler started for {len(self._actors)} room(s)")

    async def stop(self):
        for actor in self._actors.values():
            await actor.stop()

    async def drain(self):
        for actor in self._actors.values():
            await actor.drain()

    async def load(self):
        """Seed every room's allow-list from the last closed drawing of its channel"""
        for channel in self._room_for_channel:
            winners = await asyncio.to_thread(self.store.load_last_closed_winners, channel)
            await self.winners_changed(channel, winners)

    async def winners_changed(self, channel, winners):
        """
        Queue an allow-list recompute after a channel's winners changed

        Callers hold the channel's drawing lock, so recomputes reach the room in
        the same order the winners changed.

        Returns:
            bool: False if the channel has no room
        """
        room_id = self._room_for_channel.get(channel)
        if room_id is None:
            logger.debug(f"Channel {channel} has no room, skipping allow-list update")
            return False

        await self._actors[room_id].submit(WinnersChanged(room_id, tuple(winners)))
        return True

    async def identity_changed(self, chat_identity):
        """Recompute the allow-list of every room where this identity is a winner"""
        for room_id, actor in self._actors.items():
            await actor.submit(IdentityChanged(room_id, chat_identity))

    async def dispatch(self, event):
        """Route an inbound room event to its room's serial stream"""
        actor = self._actors.get(event.room_id)
        if actor is None:
            logger.debug(f"Ignoring event for unmanaged room {event.room_id}")
            return
        await actor.submit(event)
