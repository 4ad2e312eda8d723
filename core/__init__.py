"""
Transport adapters for the drawing bot

Modules:
- steam_profiles: Steam Community profile-link resolution
- room_bridge: Redis bridge to the room client (join/kick + membership events)
- discord_chat: say/whisper over Discord
"""

from .discord_chat import DiscordChatTransport
from .room_bridge import RedisRoomBridge, decode_event, start_room_bridge
from .steam_profiles import SteamProfileLookup, parse_profile_xml, profile_xml_url

__all__ = [
    'DiscordChatTransport',
    'RedisRoomBridge',
    'decode_event',
    'start_room_bridge',
    'SteamProfileLookup',
    'parse_profile_xml',
    'profile_xml_url',
]
