"""
Redis bridge to the room transport
The room client runs as a separate process; we publish join/kick commands to it
and receive room/membership events back over Redis pub/sub.
"""

import asyncio
import json
import logging
import os

import redis

from drawing_system.config import ROOM_COMMANDS_CHANNEL, ROOM_EVENTS_CHANNEL
from drawing_system.exceptions import RoomJoinFailed
from room_access.events import MemberChange, MemberStateChanged, RoomJoined

logger = logging.getLogger(__name__)


def decode_event(payload):
    """
    Turn a bridge message into a room event

    Args:
        payload: dict with 'action' and 'data'

    Returns:
        RoomJoined or MemberStateChanged, or None for actions we don't handle

    Raises:
        ValueError: If a known action is missing fields
    """
    action = payload.get('action')
    data = payload.get('data') or {}

    try:
        if action == 'room_joined':
            return RoomJoined(
                room_id=str(data['room_id']),
                result=int(data['result']),
                members=tuple(str(member) for member in data.get('members', [])),
            )
        if action == 'member_state_changed':
            actor_id = data.get('actor_id')
            return MemberStateChanged(
                kind=MemberChange.parse(data['kind']),
                member_id=str(data['member_id']),
                room_id=str(data['room_id']),
                actor_id=str(actor_id) if actor_id is not None else None,
            )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed {action} event: {e}") from e

    return None


class RedisRoomBridge:
    """Room transport over Redis pub/sub"""

    def __init__(self, redis_url=None, commands_channel=ROOM_COMMANDS_CHANNEL, events_channel=ROOM_EVENTS_CHANNEL):
        self.commands_channel = commands_channel
        self.events_channel = events_channel
        self.enabled = False
        self.client = None
        self.pubsub = None
        self.subscribed = False

        redis_url = redis_url or os.getenv('REDIS_URL')
        if redis_url:
            if '://' not in redis_url:
                redis_url = f'redis://{redis_url}'
            try:
                self.client = redis.from_url(redis_url, decode_responses=True)
                self.pubsub = self.client.pubsub()
                self.enabled = True
                logger.info("✅ Room bridge connected to Redis")
            except redis.RedisError as e:
                logger.warning(f"⚠️ Redis unavailable for room bridge: {e}")
        else:
            logger.warning("⚠️ REDIS_URL not set, room commands will only be logged")

    async def join_room(self, room_id):
        try:
            await self._publish('join', {'room_id': room_id})
        except redis.RedisError as e:
            raise RoomJoinFailed(f"Could not request join for room {room_id}: {e}") from e

    async def kick(self, room_id, member_id):
        await self._publish('kick', {'room_id': room_id, 'member_id': member_id})

    async def _publish(self, action, data):
        if not self.enabled:
            logger.warning(f"Room bridge disabled, not sending {action} {data}")
            return False

        message = json.dumps({'action': action, 'data': data})
        await asyncio.to_thread(self.client.publish, self.commands_channel, message)
        logger.debug(f"📤 Room bridge published {action}: {data}")
        return True

    async def subscribe(self):
        """Subscribe to the events channel (pub/sub drops anything sent before this)"""
        if not self.enabled or self.subscribed:
            return
        await asyncio.to_thread(self.pubsub.subscribe, self.events_channel)
        self.subscribed = True
        logger.info(f"🎧 Room bridge subscribed to {self.events_channel}")

    async def listen(self, handler):
        """
        Feed room events to `handler` until cancelled

        Args:
            handler: Async callable taking one room event
        """
        if not self.enabled:
            logger.info("Room bridge not enabled, skipping event listener")
            return

        await self.subscribe()

        while True:
            try:
                message = await asyncio.to_thread(self.pubsub.get_message, timeout=1.0)

                if message and message['type'] == 'message':
                    try:
                        event = decode_event(json.loads(message['data']))
                    except ValueError as e:
                        # json.JSONDecodeError is a ValueError too
                        logger.warning(f"Skipping malformed room event: {e}")
                        continue

                    if event is None:
                        logger.debug(f"Ignoring room bridge message: {message['data']}")
                        continue

                    await handler(event)

                await asyncio.sleep(0.01)

            except redis.RedisError as e:
                logger.error(f"Room bridge listener error: {e}")
                await asyncio.sleep(5)
                await asyncio.to_thread(self.pubsub.subscribe, self.events_channel)


async def start_room_bridge(bridge, reconciler):
    """
    Start room access on top of a bridge

    The bridge subscribes before any join request goes out, so the room's
    join reply can't be published to nobody.

    Args:
        bridge: RedisRoomBridge (or anything with subscribe/listen)
        reconciler: AccessReconciler fed by the bridge

    Returns:
        asyncio.Task: The running listener
    """
    await bridge.subscribe()
    listener = asyncio.create_task(bridge.listen(reconciler.dispatch))
    await reconciler.start()
    return listener
