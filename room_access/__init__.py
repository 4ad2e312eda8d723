"""
Room Access Package
Reconciles external room membership against drawing winners
"""

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
from .reconciler import AccessReconciler, RoomActor
from .roster import JoinState, RoomRoster, compute_allow_list

__all__ = [
    'AccessReconciler',
    'RoomActor',
    'RoomRoster',
    'JoinState',
    'compute_allow_list',
    'AllowListChanged',
    'IdentityChanged',
    'RecomputeRequested',
    'WinnersChanged',
    'JoinRequested',
    'MemberChange',
    'MemberStateChanged',
    'RoomJoined',
]
