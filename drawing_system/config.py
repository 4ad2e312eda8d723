"""
Drawing System Configuration
All configurable parameters for drawings and room access
"""

import json
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

# Ticket weighting
TICKET_MULTIPLIER = int(os.getenv("TICKET_MULTIPLIER", "3"))  # copies per privileged entrant
PRIVILEGED_ROLE = os.getenv("PRIVILEGED_ROLE", "Subscriber")

# "Entries open" notice interval (in seconds)
ENTRIES_OPEN_INTERVAL = int(os.getenv("ENTRIES_OPEN_INTERVAL", "30"))

# Profile lookups
PROFILE_LOOKUP_TIMEOUT = int(os.getenv("PROFILE_LOOKUP_TIMEOUT", "10"))

# Room access
ROOM_MAIN_MEMBER = os.getenv("ROOM_MAIN_MEMBER", "")
BOT_EXTERNAL_ID = os.getenv("BOT_EXTERNAL_ID", "")
ROOM_COMMANDS_CHANNEL = os.getenv("ROOM_COMMANDS_CHANNEL", "room:commands")
ROOM_EVENTS_CHANNEL = os.getenv("ROOM_EVENTS_CHANNEL", "room:events")
ROOM_JOIN_SUCCESS = 1  # EChatRoomEnterResponse.Success

# Chat channel id -> {"room": "<room id>", "main_member": "<external id>"}
DRAWING_CHANNELS = os.getenv("DRAWING_CHANNELS", "{}")


@dataclass(frozen=True)
class ChannelConfig:
    """One chat channel and the external room its winners are admitted to"""

    channel: str
    room_id: str
    main_member: str = ""


def load_channel_configs(raw=None, default_main_member=None):
    """
    Parse the DRAWING_CHANNELS setting

    Args:
        raw: JSON string (None = DRAWING_CHANNELS env value)
        default_main_member: Main member for channels that don't set one

    Returns:
        dict: channel -> ChannelConfig

    Raises:
        ConfigurationError: If the JSON or any entry is malformed
    """
    if raw is None:
        raw = DRAWING_CHANNELS
    if default_main_member is None:
        default_main_member = ROOM_MAIN_MEMBER

    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"DRAWING_CHANNELS is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ConfigurationError("DRAWING_CHANNELS must be a JSON object keyed by channel")

    configs = {}
    for channel, options in parsed.items():
        if not isinstance(options, dict) or not options.get("room"):
            raise ConfigurationError(f"Channel {channel} needs a 'room' entry")
        configs[str(channel)] = ChannelConfig(
            channel=str(channel),
            room_id=str(options["room"]),
            main_member=str(options.get("main_member") or default_main_member or ""),
        )
    return configs
