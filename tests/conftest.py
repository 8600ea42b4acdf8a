from pathlib import Path

import pytest

from kiln.api import RegistryClient, pick_latest, pick_version
from kiln.config import EngineConfig, KilnSettings
from kiln.exceptions import FetchError, RegistryModNotFoundError
from kiln.models import ModInfo, ReleaseInfo
from kiln.orchestrator import KilnOrchestrator

FILES_URL = "https://mods.example.test/files"


def make_mod(alias: str, *versions: str) -> ModInfo:
    """Mod with releases listed newest first, like the mod database does."""
    releases = [
        ReleaseInfo(
            release_id=i,
            version=version,
            filename=f"{alias}_{version}.zip",
            main_file=f"{FILES_URL}/{alias}/{version}.zip",
        )
        for i, version in enumerate(versions)
    ]
    return ModInfo(mod_id=None, name=alias, alias=alias, releases=releases)


def release_url(alias: str, version: str) -> str:
    return f"{FILES_URL}/{alias}/{version}.zip"


class FakeRegistry(RegistryClient):
    """In-memory registry; URLs in ``failing_urls`` raise FetchError."""

    def __init__(self, *mods: ModInfo):
        self.mods = {mod.alias: mod for mod in mods}
        self.failing_urls = set()
        self.flaky_urls = {}
        self.lookups = []
        self.fetches = []
        self.closed = False

    def _get(self, alias_or_id: str) -> ModInfo:
        if alias_or_id not in self.mods:
            raise RegistryModNotFoundError(f"mod '{alias_or_id}' not found")
        return self.mods[alias_or_id]

    async def resolve_latest(self, alias_or_id):
        self.lookups.append((alias_or_id, None))
        return pick_latest(self._get(alias_or_id), alias_or_id)

    async def resolve_version(self, alias_or_id, version):
        self.lookups.append((alias_or_id, version))
        return pick_version(self._get(alias_or_id), alias_or_id, version)

    async def fetch_bytes(self, url):
        self.fetches.append(url)
        if url in self.failing_urls:
            raise FetchError(f"connection refused: {url}", context={"url": url})
        if self.flaky_urls.get(url, 0) > 0:
            self.flaky_urls[url] -= 1
            yield b"partial"
            raise FetchError(f"connection reset: {url}", context={"url": url})
        yield b"content of "
        yield url.encode()

    async def close(self):
        self.closed = True


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry(
        make_mod("abc", "1.3", "1.2", "1.1"),
        make_mod("foo", "2.0.1", "1.9"),
        ModInfo(mod_id=7, name="empty", alias="empty", releases=[]),
    )


@pytest.fixture
def engine(tmp_path: Path, registry: FakeRegistry) -> EngineConfig:
    settings = KilnSettings(max_concurrent=3, max_retries=0, retry_delay=0)
    return EngineConfig(base_dir=tmp_path / "home", registry=registry, settings=settings)


@pytest.fixture
def orchestrator(engine: EngineConfig) -> KilnOrchestrator:
    return KilnOrchestrator(engine)
