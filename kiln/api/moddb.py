"""
Vintage Story mod database client

Resolves aliases/ids to releases and streams release files.
"""

import asyncio
from typing import AsyncIterator, Optional
from urllib.parse import quote, urljoin

import aiohttp
from loguru import logger

from kiln.api.base import RegistryClient
from kiln.exceptions import (
    FetchError,
    NoReleasesError,
    RegistryModNotFoundError,
    VersionNotFoundError,
)
from kiln.models import ModInfo, ReleaseInfo, ResolvedRelease, safe_filename

MODDB_BASE_URL = "https://mods.vintagestory.at"
CHUNK_SIZE = 64 * 1024


def _to_resolved(release: ReleaseInfo, base_url: str) -> ResolvedRelease:
    return ResolvedRelease(
        target_filename=safe_filename(release.filename or ""),
        download_url=urljoin(base_url + "/", release.main_file or ""),
        resolved_version=release.version,
    )


def pick_latest(mod: ModInfo, alias_or_id: str, base_url: str = MODDB_BASE_URL) -> ResolvedRelease:
    """The database lists releases newest first; take the first fetchable one."""
    for release in mod.releases:
        if release.fetchable:
            return _to_resolved(release, base_url)
    raise NoReleasesError(
        f"mod '{alias_or_id}' has no downloadable release",
        context={"mod": alias_or_id},
    )


def pick_version(
    mod: ModInfo, alias_or_id: str, version: str, base_url: str = MODDB_BASE_URL
) -> ResolvedRelease:
    """
    Release matching ``version`` exactly.

    When several releases share the version string the first in listing
    order wins.
    """
    matches = [r for r in mod.releases if r.version == version and r.fetchable]
    if not matches:
        raise VersionNotFoundError(
            f"mod '{alias_or_id}' has no release with version '{version}'",
            context={"mod": alias_or_id, "version": version},
        )
    if len(matches) > 1:
        logger.info(
            f"[resolve] {len(matches)} releases of '{alias_or_id}' carry version "
            f"'{version}', using release {matches[0].release_id}"
        )
    return _to_resolved(matches[0], base_url)


class ModDBClient(RegistryClient):
    """Vintage Story mod database client"""

    def __init__(
        self,
        base_url: str = MODDB_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30),
            )
        return self._session

    async def _request(self, endpoint: str) -> Optional[dict]:
        """Send an API request, ``None`` when the resource does not exist"""
        try:
            async with self.session.get(endpoint) as response:
                if response.status == 404:
                    return None
                if response.status != 200:
                    raise FetchError(
                        f"mod database request failed (status {response.status})",
                        context={"url": endpoint},
                        status=response.status,
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(
                f"mod database request failed: {e}", context={"url": endpoint}
            ) from e
        except ValueError as e:
            raise FetchError(
                f"mod database sent a response that is not JSON: {e}", context={"url": endpoint}
            ) from e

        # the API reports missing mods in the body with HTTP 200
        if not isinstance(data, dict) or str(data.get("statuscode")) == "404":
            return None
        return data

    async def get_mod(self, alias_or_id: str) -> ModInfo:
        data = await self._request(f"{self.base_url}/api/mod/{quote(alias_or_id, safe='')}")
        if data is None or not isinstance(data.get("mod"), dict):
            raise RegistryModNotFoundError(
                f"mod '{alias_or_id}' not found on the mod database",
                context={"mod": alias_or_id},
            )
        return ModInfo.from_moddb(data["mod"])

    async def resolve_latest(self, alias_or_id: str) -> ResolvedRelease:
        mod = await self.get_mod(alias_or_id)
        return pick_latest(mod, alias_or_id, self.base_url)

    async def resolve_version(self, alias_or_id: str, version: str) -> ResolvedRelease:
        mod = await self.get_mod(alias_or_id)
        return pick_version(mod, alias_or_id, version, self.base_url)

    async def fetch_bytes(self, url: str) -> AsyncIterator[bytes]:
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise FetchError(
                        f"HTTP {response.status} for {url}",
                        context={"url": url},
                        status=response.status,
                    )
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"could not fetch {url}: {e}", context={"url": url}) from e

    async def close(self):
        """Close the client"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()
