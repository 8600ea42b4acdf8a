"""
Registry data models

Release information returned by the mod database, and the resolved
artifact handed to the download step.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class ResolvedRelease:
    """Concrete artifact for one mod reference."""

    target_filename: str
    download_url: str
    resolved_version: str


@dataclass
class ReleaseInfo:
    """
    One release of a mod on the mod database.
    """

    release_id: Optional[int]
    version: str
    filename: Optional[str]
    main_file: Optional[str]
    mod_id_str: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created: Optional[str] = None

    @property
    def fetchable(self) -> bool:
        return bool(self.main_file and self.filename)

    @classmethod
    def from_moddb(cls, data: dict) -> "ReleaseInfo":
        """
        Convert a release entry of the mod database API into a ReleaseInfo.
        """
        return cls(
            release_id=data.get("releaseid"),
            version=str(data.get("modversion") or ""),
            filename=data.get("filename"),
            main_file=data.get("mainfile"),
            mod_id_str=data.get("modidstr"),
            tags=list(data.get("tags") or []),
            created=data.get("created"),
        )


@dataclass
class ModInfo:
    """
    Mod project on the mod database.
    """

    mod_id: Optional[int]
    name: str
    alias: Optional[str]
    releases: List[ReleaseInfo]

    @classmethod
    def from_moddb(cls, data: dict) -> "ModInfo":
        return cls(
            mod_id=data.get("modid"),
            name=data.get("name", ""),
            alias=data.get("urlalias"),
            releases=[ReleaseInfo.from_moddb(r) for r in data.get("releases") or []],
        )
