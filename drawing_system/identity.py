"""
Identity & Ticket Resolution
Maps chat identities to room identities and enters them with the right ticket weight
"""

import asyncio
import logging
from dataclasses import dataclass

from .config import TICKET_MULTIPLIER
from .exceptions import NoProfileOnFile

logger = logging.getLogger(__name__)


@dataclass
class EnterResult:
    identity: str
    external_identity: str
    weight: int


class IdentityResolver:
    """Resolves profile links through an external lookup and keeps the mapping in the store"""

    def __init__(self, store, registry, lookup, multiplier=TICKET_MULTIPLIER, on_identity_changed=None):
        """
        Args:
            store: DrawingStore holding the users table
            registry: DrawingRegistry used to enter the resolved identity
            lookup: Object with `async resolve(profile_link) -> external identity`
                that raises ResolutionFailed
            multiplier: Ticket copies for privileged entrants
            on_identity_changed: Async callable (chat_identity) run when a stored
                mapping is created or changed
        """
        self.store = store
        self.registry = registry
        self.lookup = lookup
        self.multiplier = multiplier
        self.on_identity_changed = on_identity_changed

    def weight_for(self, is_privileged):
        return self.multiplier if is_privileged else 1

    async def resolve(self, chat_identity, profile_link=None):
        """
        Get the external identity for a chat identity

        With a link: look it up and upsert the mapping, but only once the lookup
        succeeded. A new or changed mapping is reported to on_identity_changed so
        rooms admitting this identity pick up the new external id. Without a
        link: use the stored mapping.

        Raises:
            NoProfileOnFile: No link given and nothing stored
            ResolutionFailed: The lookup failed (mapping untouched)
        """
        if not profile_link:
            external = await asyncio.to_thread(self.store.get_external_identity, chat_identity)
            if external is None:
                raise NoProfileOnFile()
            return external

        external = await self.lookup.resolve(profile_link)
        changed = await asyncio.to_thread(self.store.upsert_identity, chat_identity, external, profile_link)
        if changed and self.on_identity_changed:
            await self.on_identity_changed(chat_identity)
        return external

    async def resolve_and_enter(self, channel, chat_identity, profile_link=None, is_privileged=False):
        """
        Resolve an identity, then enter it into the channel's drawing

        Returns:
            EnterResult

        Raises:
            KeyError: Channel has no drawing configured
            NoProfileOnFile, ResolutionFailed: From resolve()
            NoOpenDrawing, AlreadyEntered: From the drawing
        """
        drawing = self.registry.get(channel)
        external = await self.resolve(chat_identity, profile_link)

        weight = self.weight_for(is_privileged)
        await drawing.enter(chat_identity, weight)

        logger.info(f"{chat_identity} ({external}) entered {channel} with weight {weight}")
        return EnterResult(identity=chat_identity, external_identity=external, weight=weight)
