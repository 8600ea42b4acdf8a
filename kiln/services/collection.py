"""
Collection store

One folder per collection under the instances directory, holding the
``kiln.json`` record and the ``Mods`` folder with fetched artifacts.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List

from loguru import logger

from kiln.exceptions import (
    CollectionExistsError,
    CollectionNotFoundError,
    CorruptRecordError,
    InvalidNameError,
)
from kiln.models import CollectionState

RECORD_FILE = "kiln.json"
MODS_DIR = "Mods"


def validate_name(name: str) -> str:
    if not name or name in (".", "..") or Path(name).name != name or "\\" in name or "/" in name:
        raise InvalidNameError(f"invalid collection name: {name!r}", context={"name": name})
    return name


class CollectionStore:
    """Reads and writes collection records"""

    def __init__(self, instances_dir: Path):
        self.instances_dir = instances_dir

    def path_for(self, name: str) -> Path:
        return self.instances_dir / validate_name(name)

    def record_path(self, name: str) -> Path:
        return self.path_for(name) / RECORD_FILE

    def mods_dir(self, name: str) -> Path:
        return self.path_for(name) / MODS_DIR

    def exists(self, name: str) -> bool:
        return self.record_path(name).exists()

    def list(self) -> List[str]:
        if not self.instances_dir.exists():
            return []
        return sorted(
            p.name for p in self.instances_dir.iterdir() if (p / RECORD_FILE).is_file()
        )

    def create(self, name: str) -> CollectionState:
        if self.exists(name):
            raise CollectionExistsError(f"collection '{name}' already exists", context={"name": name})

        state = CollectionState(name=name)
        self.mods_dir(name).mkdir(parents=True, exist_ok=True)
        self.save(state)
        logger.success(f"[collection] created '{name}'")
        return state

    def load(self, name: str) -> CollectionState:
        path = self.record_path(name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CollectionNotFoundError(f"collection '{name}' not found", context={"name": name}) from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptRecordError(f"{path} is not valid JSON: {e}", context={"path": str(path)}) from e

        state = CollectionState.from_dict(data)
        if state.name != name:
            logger.warning(f"[collection] record in '{name}' is named '{state.name}', using '{name}'")
            state.name = name
        logger.debug(f"[collection] loaded '{name}' ({len(state.mods)} mods)")
        return state

    def save(self, state: CollectionState) -> None:
        """
        Atomically write the record.

        The record is written to a temp file next to it and renamed over
        the old one, so a failed write leaves the previous record intact.
        """
        path = self.record_path(state.name)
        path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            delete=False,
            dir=path.parent,
            prefix=".kiln-",
            suffix=".tmp",
        ) as f:
            json.dump(state.to_dict(), f, indent=4)
            temp_path = Path(f.name)

        try:
            os.replace(temp_path, path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

        logger.debug(f"[collection] saved '{state.name}' ({len(state.mods)} mods)")

    def delete(self, name: str) -> None:
        if not self.exists(name):
            raise CollectionNotFoundError(f"collection '{name}' not found", context={"name": name})
        shutil.rmtree(self.path_for(name))
        logger.success(f"[collection] deleted '{name}'")
