"""
Download manager

Streams artifacts from the registry client to disk with retries.
"""

import asyncio
import os
import uuid
from pathlib import Path

import aiofiles
from loguru import logger

from kiln.api import RegistryClient
from kiln.exceptions import ArtifactWriteError, FetchError, KilnError
from kiln.models import safe_filename


class DownloadManager:
    """Download manager"""

    def __init__(
        self,
        registry: RegistryClient,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ):
        self.registry = registry
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def download_file(self, url: str, filename: str, download_dir: Path) -> Path:
        """
        Download one file, replacing any existing file of the same name.

        Returns:
            Path of the written file

        Raises:
            FetchError: the content could not be fetched after all retries
            ArtifactWriteError: the file could not be written
        """
        filename = safe_filename(filename)
        if filename in ("", ".", ".."):
            raise ArtifactWriteError(
                f"refusing to write artifact with filename {filename!r}",
                context={"url": url},
            )

        try:
            download_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(
                f"could not create {download_dir}: {e}", context={"dir": str(download_dir)}
            ) from e

        file_path = download_dir / filename
        part_path = download_dir / f".{filename}.{uuid.uuid4().hex[:8]}.part"

        logger.info(f"[fetch] {filename} <- {url}")

        for attempt in range(self.max_retries + 1):
            try:
                downloaded = await self._stream_to(url, part_path)
                os.replace(part_path, file_path)
            except KilnError as e:
                self._discard(part_path)
                retryable = isinstance(e, FetchError) and not isinstance(e, ArtifactWriteError)
                if retryable and attempt < self.max_retries:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"[retry] fetching '{filename}' failed (attempt {attempt + 1}): {e}. "
                        f"retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error(f"[error] fetching '{filename}' failed: {e}")
                raise
            except OSError as e:
                self._discard(part_path)
                logger.error(f"[error] writing '{filename}' failed: {e}")
                raise ArtifactWriteError(
                    f"could not write {file_path}: {e}", context={"file": str(file_path)}
                ) from e

            logger.success(f"[done] '{filename}' ({downloaded / 1024:.1f} KiB)")
            return file_path

    async def _stream_to(self, url: str, part_path: Path) -> int:
        downloaded = 0
        async with aiofiles.open(part_path, "wb") as f:
            async for chunk in self.registry.fetch_bytes(url):
                await f.write(chunk)
                downloaded += len(chunk)
        return downloaded

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"[cleanup] could not remove {path}: {e}")
