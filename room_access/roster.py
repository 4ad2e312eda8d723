"""
Room roster
Allow-list bookkeeping for one external room
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Set


class JoinState(Enum):
    JOINING = "joining"
    JOINED = "joined"
    FAILED = "failed"


@dataclass
class RoomRoster:
    """
    Derived view of a room. The allow-list always comes from the channel's
    winners; `present` is only what membership events have told us.
    """

    room_id: str
    main_member: str = ""
    allow_members: Set[str] = field(default_factory=set)
    join_state: JoinState = JoinState.JOINING
    initialized: bool = False
    present: Set[str] = field(default_factory=set)

    def __post_init__(self):
        if self.main_member:
            self.allow_members.add(self.main_member)


def compute_allow_list(main_member, winners, mapping):
    """
    Build a room's allow-list from the main member and the current winners

    Args:
        main_member: External identity that is always allowed (may be empty)
        winners: Chat identities of the current winners
        mapping: dict chat identity -> external identity

    Returns:
        tuple: (frozenset of allowed external identities,
                list of winners with no external identity on file)
    """
    allowed = {main_member} if main_member else set()
    missing = []

    for winner in winners:
        external = mapping.get(winner)
        if external:
            allowed.add(external)
        else:
            missing.append(winner)

    return frozenset(allowed), missing
