"""
Configuration

Data directory lookup, user settings and the engine configuration passed
to every flow.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import click
import toml
import yaml

from kiln.api import MODDB_BASE_URL, ModDBClient, RegistryClient
from kiln.exceptions import ConfigParseError, ConfigValidationError

APP_NAME = "Kiln"
SETTINGS_FILE = "config.toml"
INSTANCES_DIR = "instances"


def get_data_dir() -> Path:
    """``KILN_HOME`` if set, else the platform's per-user app directory."""
    home = os.environ.get("KILN_HOME")
    if home:
        return Path(home)
    return Path(click.get_app_dir(APP_NAME))


@dataclass
class KilnSettings:
    registry_url: str = MODDB_BASE_URL
    max_concurrent: int = 5
    max_retries: int = 2
    retry_delay: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "KilnSettings":
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigValidationError(
                f"unknown settings: {', '.join(sorted(unknown))}",
                context={"keys": sorted(unknown)},
            )

        settings = cls(**data)
        settings.validate()
        return settings

    def validate(self) -> None:
        if not isinstance(self.registry_url, str) or not self.registry_url.startswith(
            ("http://", "https://")
        ):
            raise ConfigValidationError(f"registry_url must be an http(s) URL: {self.registry_url!r}")
        if not isinstance(self.max_concurrent, int) or self.max_concurrent <= 0:
            raise ConfigValidationError("max_concurrent must be a positive integer")
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigValidationError("max_retries must be zero or a positive integer")
        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ConfigValidationError("retry_delay must be a non-negative number")


def load_settings(path: Path) -> KilnSettings:
    """Load settings; a missing file gives the defaults"""
    if not path.exists():
        return KilnSettings()

    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
        if suffix == ".toml":
            data: Any = toml.loads(text)
        elif suffix == ".json":
            data = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            raise ConfigParseError(f"unsupported settings format: {suffix}", context={"path": str(path)})
    except (OSError, ValueError, toml.TomlDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"could not read {path}: {e}", context={"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigParseError(f"{path} must contain a table of settings", context={"path": str(path)})
    return KilnSettings.from_dict(data)


def default_registry(settings: KilnSettings) -> RegistryClient:
    return ModDBClient(base_url=settings.registry_url)


@dataclass
class EngineConfig:
    """Everything the engine needs: where to keep data and which registry to ask."""

    base_dir: Path
    registry: RegistryClient
    settings: KilnSettings = field(default_factory=KilnSettings)

    @property
    def instances_dir(self) -> Path:
        return self.base_dir / INSTANCES_DIR

    @classmethod
    def from_environment(
        cls,
        base_dir: Optional[Path] = None,
        registry_factory: Optional[Callable[[KilnSettings], RegistryClient]] = None,
    ) -> "EngineConfig":
        """Settings from the data directory, registry built from those settings."""
        base_dir = base_dir or get_data_dir()
        settings = load_settings(base_dir / SETTINGS_FILE)
        factory = registry_factory or default_registry
        return cls(base_dir=base_dir, registry=factory(settings), settings=settings)
