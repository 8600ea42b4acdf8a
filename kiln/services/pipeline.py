"""
Resolution pipeline

Turns mod references into fetched artifacts. Every reference in a batch is
resolved and fetched concurrently, and every one of them yields an outcome:
a failure is recorded, never raised out of the batch.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from kiln.api import RegistryClient
from kiln.download import DownloadManager
from kiln.exceptions import KilnError
from kiln.models import DirectMod, ModReference, RegistryMod, ResolvedRelease


@dataclass(frozen=True)
class Resolved:
    """Reference (with its version pinned) and where its artifact was saved."""

    reference: ModReference
    saved_path: Optional[Path]
    release: ResolvedRelease

    ok = True


@dataclass(frozen=True)
class Failed:
    reference: ModReference
    error: Exception

    ok = False


Outcome = Union[Resolved, Failed]


class ResolutionPipeline:
    """Resolution pipeline"""

    def __init__(
        self,
        registry: RegistryClient,
        max_concurrent: int = 5,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ):
        self.registry = registry
        self.max_concurrent = max_concurrent
        self.downloader = DownloadManager(
            registry,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    async def lookup(self, reference: ModReference) -> ResolvedRelease:
        """
        Determine the concrete artifact for one reference.

        A registry mod without a version resolves to the latest release.
        A direct mod needs no registry call.
        """
        if isinstance(reference, DirectMod):
            return ResolvedRelease(
                target_filename=reference.target_filename,
                download_url=reference.source,
                resolved_version="",
            )
        if isinstance(reference, RegistryMod):
            if reference.version:
                return await self.registry.resolve_version(reference.id, reference.version)
            return await self.registry.resolve_latest(reference.id)
        raise TypeError(f"not a mod reference: {reference!r}")

    async def resolve_all(
        self,
        references: Iterable[ModReference],
        destination_dir: Path,
    ) -> List[Outcome]:
        """
        Resolve and fetch a batch of references.

        Args:
            references: mods to fetch
            destination_dir: folder the artifacts are written to

        Returns:
            One outcome per reference, in input order
        """
        references = list(references)
        semaphore = asyncio.Semaphore(self.max_concurrent)
        in_flight: Dict[str, Tuple[str, asyncio.Task]] = {}

        logger.info(f"[resolve] {len(references)} mod(s) -> {destination_dir}")

        async def attempt(reference: ModReference) -> Outcome:
            try:
                async with semaphore:
                    release = await self.lookup(reference)
                path = await self._fetch(release, destination_dir, semaphore, in_flight)
            except KilnError as e:
                logger.error(f"[resolve] '{reference.identifier}' failed: {e}")
                return Failed(reference, e)
            except Exception as e:
                logger.exception(f"[resolve] '{reference.identifier}' failed unexpectedly: {e}")
                return Failed(reference, e)
            return Resolved(reference.pinned(release.resolved_version), path, release)

        outcomes = await asyncio.gather(*(attempt(ref) for ref in references))

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        if failed:
            logger.warning(f"[resolve] {len(outcomes) - failed} resolved, {failed} failed")
        else:
            logger.success(f"[resolve] {len(outcomes)} resolved")
        return list(outcomes)

    async def _fetch(
        self,
        release: ResolvedRelease,
        destination_dir: Path,
        semaphore: asyncio.Semaphore,
        in_flight: Dict[str, Tuple[str, asyncio.Task]],
    ) -> Path:
        # same (url, filename) within one batch shares a single fetch
        key = release.target_filename
        existing = in_flight.get(key)
        if existing is not None:
            url, task = existing
            if url == release.download_url:
                return await task
            logger.warning(
                f"[fetch] two mods in this batch write '{key}' from different URLs; "
                f"the last one to finish wins"
            )

        async def fetch() -> Path:
            async with semaphore:
                return await self.downloader.download_file(
                    release.download_url, release.target_filename, destination_dir
                )

        task = asyncio.ensure_future(fetch())
        in_flight[key] = (release.download_url, task)
        return await task

    async def resolve_one(
        self,
        reference: ModReference,
        destination_dir: Path,
        release: Optional[ResolvedRelease] = None,
    ) -> Resolved:
        """
        Resolve and fetch a single reference; the failure, if any, is raised.

        A ``release`` that was already looked up is fetched as is.
        """
        if release is None:
            release = await self.lookup(reference)
        path = await self.downloader.download_file(
            release.download_url, release.target_filename, destination_dir
        )
        return Resolved(reference.pinned(release.resolved_version), path, release)

    async def check_all(self, references: Iterable[ModReference]) -> List[Outcome]:
        """Run only the lookup step for every reference, nothing is fetched."""
        references = list(references)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def attempt(reference: ModReference) -> Outcome:
            try:
                async with semaphore:
                    release = await self.lookup(reference)
            except KilnError as e:
                return Failed(reference, e)
            except Exception as e:
                logger.exception(f"[check] '{reference.identifier}' failed unexpectedly: {e}")
                return Failed(reference, e)
            return Resolved(reference.pinned(release.resolved_version), None, release)

        return list(await asyncio.gather(*(attempt(ref) for ref in references)))
