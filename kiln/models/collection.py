"""
Collection models

``CollectionState`` is the local record of a collection. ``TransferDescriptor``
is the portable form written into .kiln files and must stay stable, so it
only ever carries ``name`` and ``mods``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kiln.exceptions import (
    AmbiguousModError,
    CorruptRecordError,
    DuplicateModError,
    FileConflictError,
    MalformedReferenceError,
    ModNotFoundError,
)
from kiln.models.mods import ModReference, mod_from_dict


@dataclass
class CollectionState:
    """
    Local record of one collection.

    ``files`` is local-only: it maps a mod identifier to the artifact
    filename saved in the collection's mods folder.
    """

    name: str
    mods: List[ModReference] = field(default_factory=list)
    files: Dict[str, str] = field(default_factory=dict)

    def find(self, identifier: str) -> List[ModReference]:
        """All entries whose id or name equals ``identifier``."""
        return [mod for mod in self.mods if mod.identifier == identifier]

    def ensure_absent(self, mod: ModReference) -> None:
        """
        Raise if an entry with the same identifier is already present.

        The identifier is matched across both variants, so a direct mod
        cannot take the name of a registry mod's id and the other way round;
        version and source are ignored.
        """
        if self.find(mod.identifier):
            raise DuplicateModError(
                f"'{mod.identifier}' is already in collection '{self.name}'",
                context={"collection": self.name, "mod": mod.identifier},
            )

    def ensure_file_free(self, mod: ModReference, filename: str) -> None:
        """Raise if another entry already owns the artifact ``filename``."""
        for identifier, owned in self.files.items():
            if owned == filename and identifier != mod.identifier:
                raise FileConflictError(
                    f"'{mod.identifier}' would overwrite '{filename}', which belongs to '{identifier}'",
                    context={"collection": self.name, "mod": mod.identifier, "file": filename},
                )

    def append(self, mod: ModReference, filename: Optional[str] = None) -> None:
        self.ensure_absent(mod)
        if filename:
            self.ensure_file_free(mod, filename)
        self.mods.append(mod)
        if filename:
            self.files[mod.identifier] = filename

    def remove(self, identifier: str) -> ModReference:
        """
        Remove the single entry matching ``identifier``.

        Raises:
            ModNotFoundError: nothing matches
            AmbiguousModError: more than one entry matches
        """
        matches = self.find(identifier)
        if not matches:
            raise ModNotFoundError(
                f"no mod '{identifier}' in collection '{self.name}'",
                context={"collection": self.name, "mod": identifier},
            )
        if len(matches) > 1:
            raise AmbiguousModError(
                f"'{identifier}' matches {len(matches)} entries in collection '{self.name}'",
                context={"collection": self.name, "mod": identifier},
            )

        mod = matches[0]
        self.mods = [m for m in self.mods if m is not mod]
        self.files.pop(identifier, None)
        return mod

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "mods": [mod.to_dict() for mod in self.mods],
            "files": dict(self.files),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CollectionState":
        if not isinstance(data, dict):
            raise CorruptRecordError("collection record must be a JSON object")

        name = data.get("name")
        mods = data.get("mods", [])
        files = data.get("files", {})
        if not isinstance(name, str) or not isinstance(mods, list) or not isinstance(files, dict):
            raise CorruptRecordError(
                "collection record needs a string 'name', a list 'mods' and a map 'files'",
                context={"name": repr(name)},
            )

        try:
            parsed = [mod_from_dict(entry) for entry in mods]
        except MalformedReferenceError as e:
            raise CorruptRecordError(
                f"collection '{name}' has a malformed mod entry: {e.message}",
                context=e.context,
            ) from e

        return cls(
            name=name,
            mods=parsed,
            files={str(k): str(v) for k, v in files.items()},
        )


@dataclass
class TransferDescriptor:
    """Portable form of a collection."""

    name: str
    mods: List[ModReference] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: CollectionState) -> "TransferDescriptor":
        # local-only fields stay behind
        return cls(name=state.name, mods=list(state.mods))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "mods": [mod.to_dict() for mod in self.mods]}
