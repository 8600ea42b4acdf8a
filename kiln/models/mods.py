"""
Mod reference model

A mod belonging to a collection is either backed by the mod database
(``RegistryMod``) or by a direct URL (``DirectMod``). On the wire both are
plain maps told apart by their keys.
"""

from dataclasses import dataclass, field, replace
from pathlib import PurePath
from typing import Any, Dict, Union
from urllib.parse import urlparse

from kiln.exceptions import MalformedReferenceError

REGISTRY_KEYS = frozenset({"id", "version"})
DIRECT_KEYS = frozenset({"name", "source"})

DIRECT_SUFFIX = ".zip"
DIRECT_SCHEMES = ("http", "https")


def safe_filename(name: str) -> str:
    """Strip any directory part so a filename cannot escape its folder."""
    return PurePath(name.replace("\\", "/")).name


def is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in DIRECT_SCHEMES and bool(parsed.netloc)


@dataclass(frozen=True)
class RegistryMod:
    """Mod resolved through the registry, pinned to one release version."""

    id: str
    version: str = field(default="", compare=False)

    @property
    def identifier(self) -> str:
        return self.id

    def pinned(self, version: str) -> "RegistryMod":
        return replace(self, version=version)

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "version": self.version}

    def __str__(self) -> str:
        return f"{self.id}@{self.version}" if self.version else self.id


@dataclass(frozen=True)
class DirectMod:
    """Mod fetched from an arbitrary URL."""

    name: str
    source: str = field(compare=False)

    @property
    def identifier(self) -> str:
        return self.name

    @property
    def target_filename(self) -> str:
        return safe_filename(self.name) + DIRECT_SUFFIX

    def pinned(self, version: str) -> "DirectMod":
        return self

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "source": self.source}

    def __str__(self) -> str:
        return f"{self.name} ({self.source})"


ModReference = Union[RegistryMod, DirectMod]


def mod_from_dict(data: Any) -> ModReference:
    """
    Build a mod reference from its untagged map form.

    Args:
        data: ``{"id", "version"}`` or ``{"name", "source"}``

    Raises:
        MalformedReferenceError: the map matches neither shape exactly
    """
    if not isinstance(data, dict):
        raise MalformedReferenceError(
            f"mod entry must be a map, got {type(data).__name__}",
            context={"entry": repr(data)},
        )

    keys = set(data)
    if keys == REGISTRY_KEYS:
        cls = RegistryMod
    elif keys == DIRECT_KEYS:
        cls = DirectMod
    else:
        raise MalformedReferenceError(
            f"mod entry has keys {sorted(map(str, keys))}, expected "
            f"{sorted(REGISTRY_KEYS)} or {sorted(DIRECT_KEYS)}",
            context={"entry": repr(data)},
        )

    for key, value in data.items():
        if not isinstance(value, str):
            raise MalformedReferenceError(
                f"mod field '{key}' must be a string",
                context={"entry": repr(data)},
            )

    if cls is RegistryMod:
        if not data["id"]:
            raise MalformedReferenceError("mod id must not be empty")
        return RegistryMod(id=data["id"], version=data["version"])

    if not data["name"]:
        raise MalformedReferenceError("mod name must not be empty")
    if not is_http_url(data["source"]):
        raise MalformedReferenceError(
            f"mod '{data['name']}' has a source that is not an http(s) URL: {data['source']!r}",
            context={"entry": repr(data)},
        )
    return DirectMod(name=data["name"], source=data["source"])


__all__ = [
    "RegistryMod",
    "DirectMod",
    "ModReference",
    "mod_from_dict",
    "safe_filename",
    "is_http_url",
]
