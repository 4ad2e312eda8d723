"""
Steam Community profile resolution
Turns a profile link into a SteamID64 using the public profile XML
"""

import asyncio
import logging
import re
import xml.etree.ElementTree as ElementTree
from typing import Optional

import aiohttp

from drawing_system.config import PROFILE_LOOKUP_TIMEOUT
from drawing_system.exceptions import ResolutionFailed

logger = logging.getLogger(__name__)

PROFILE_LINK_RE = re.compile(
    r'^(?:https?://)?(?:www\.)?steamcommunity\.com/(id|profiles)/([A-Za-z0-9_-]+)/?(?:[?#].*)?$'
)
STEAMID64_RE = re.compile(r'^7656\d{13}$')

HEADERS = {
    'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36',
    'Accept': 'application/xml,text/xml',
}


def profile_xml_url(profile_link: str) -> str:
    """
    Build the XML endpoint for a profile link

    Raises:
        ResolutionFailed: If the link isn't a steamcommunity.com /id/ or /profiles/ link
    """
    match = PROFILE_LINK_RE.match(profile_link.strip())
    if not match:
        raise ResolutionFailed(f"Not a Steam profile link: {profile_link}")
    kind, name = match.groups()
    return f'https://steamcommunity.com/{kind}/{name}/?xml=1'


def parse_profile_xml(body: str) -> str:
    """
    Extract the SteamID64 from a profile XML document

    Raises:
        ResolutionFailed: On malformed XML, an error document, or a missing/invalid id
    """
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise ResolutionFailed(f"Malformed profile response: {e}") from e

    error = root.findtext('error')
    if error:
        raise ResolutionFailed(f"Steam returned an error: {error.strip()}")

    steam_id = (root.findtext('steamID64') or '').strip()
    if not STEAMID64_RE.match(steam_id):
        raise ResolutionFailed(f"Profile response has no valid steamID64 ({steam_id!r})")
    return steam_id


class SteamProfileLookup:
    """Profile-lookup collaborator backed by steamcommunity.com"""

    def __init__(self, timeout: int = PROFILE_LOOKUP_TIMEOUT, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self._session = session

    async def resolve(self, profile_link: str) -> str:
        """
        Resolve a profile link to a SteamID64

        Args:
            profile_link: steamcommunity.com/id/<vanity> or /profiles/<steamid64>

        Returns:
            SteamID64 as string

        Raises:
            ResolutionFailed: On any network, HTTP or parsing problem
        """
        url = profile_xml_url(profile_link)

        try:
            if self._session is not None:
                body = await self._fetch(self._session, url)
            else:
                async with aiohttp.ClientSession() as session:
                    body = await self._fetch(session, url)
        except asyncio.TimeoutError as e:
            raise ResolutionFailed(f"Profile lookup timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise ResolutionFailed(f"Profile lookup failed: {type(e).__name__}: {e}") from e

        steam_id = parse_profile_xml(body)
        logger.info(f"[Steam] Resolved {profile_link} -> {steam_id}")
        return steam_id

    async def _fetch(self, session, url):
        async with session.get(
            url,
            headers=HEADERS,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            if response.status != 200:
                raise ResolutionFailed(f"Profile lookup returned HTTP {response.status}")
            return await response.text()
