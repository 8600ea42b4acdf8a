from abc import ABC, abstractmethod
from typing import AsyncIterator

from kiln.models import ResolvedRelease


class RegistryClient(ABC):
    """
    Capability the resolution pipeline consumes: look up releases and
    fetch their content.
    """

    @abstractmethod
    async def resolve_latest(self, alias_or_id: str) -> ResolvedRelease:
        """
        Most recent fetchable release of a mod.

        Raises:
            RegistryModNotFoundError: alias/id does not exist
            NoReleasesError: the mod publishes nothing fetchable
        """

    @abstractmethod
    async def resolve_version(self, alias_or_id: str, version: str) -> ResolvedRelease:
        """
        Release whose version string equals ``version``.

        Raises:
            RegistryModNotFoundError: alias/id does not exist
            VersionNotFoundError: no release with that version
        """

    @abstractmethod
    def fetch_bytes(self, url: str) -> AsyncIterator[bytes]:
        """
        Stream the content at ``url`` in chunks.

        Raises:
            FetchError: network failure or non-success status
        """

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
