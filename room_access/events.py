"""
Room event messages
Everything a room actor processes arrives as one of these, in order
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from drawing_system.config import ROOM_JOIN_SUCCESS


class MemberChange(Enum):
    ENTERED = "entered"
    LEFT = "left"
    DISCONNECTED = "disconnected"
    KICKED = "kicked"
    BANNED = "banned"
    VOICE_START = "voice_start"
    VOICE_END = "voice_end"

    @classmethod
    def parse(cls, value):
        """Accept 'Entered', 'entered', 'VOICE_START', 'voice-start'..."""
        normalized = str(value).strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == normalized or kind.name.lower() == normalized:
                return kind
        raise ValueError(f"Unknown member state change: {value!r}")

    @property
    def departs(self):
        """True if the member is no longer in the room afterwards"""
        return self in (MemberChange.LEFT, MemberChange.DISCONNECTED, MemberChange.KICKED, MemberChange.BANNED)


@dataclass(frozen=True)
class JoinRequested:
    room_id: str


@dataclass(frozen=True)
class RoomJoined:
    room_id: str
    result: int
    members: Tuple[str, ...] = ()

    @property
    def succeeded(self):
        return self.result == ROOM_JOIN_SUCCESS


@dataclass(frozen=True)
class MemberStateChanged:
    kind: MemberChange
    member_id: str
    room_id: str
    actor_id: Optional[str] = None


@dataclass(frozen=True)
class AllowListChanged:
    room_id: str
    allow_list: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class WinnersChanged:
    """A channel's winners changed; the actor recomputes its allow-list from them"""

    room_id: str
    winners: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IdentityChanged:
    """A chat identity's external identity was relinked"""

    room_id: str
    chat_identity: str


@dataclass(frozen=True)
class RecomputeRequested:
    room_id: str
