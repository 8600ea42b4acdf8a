"""
Kiln exception hierarchy

Layered exceptions carrying an error code, context and a follow-up hint.
"""

from typing import Any, Dict, Optional


class KilnError(Exception):
    """Base exception for Kiln"""

    hint: str = ""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception into a dict"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(KilnError):
    """Configuration error"""

    hint = "Check the Kiln config file in the data directory."

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """Config file could not be parsed"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """Config value out of range or of the wrong type"""

    def _get_default_code(self) -> str:
        return "E102"


class InvalidNameError(ConfigError):
    """Collection name is not usable as a directory name"""

    hint = "Use a plain name without path separators."

    def _get_default_code(self) -> str:
        return "E103"


class NotFoundError(KilnError):
    """Something that was looked up does not exist"""

    def _get_default_code(self) -> str:
        return "E200"


class CollectionNotFoundError(NotFoundError):
    hint = "Create it first with `kiln new <name>`, or check `kiln list`."

    def _get_default_code(self) -> str:
        return "E201"


class ModNotFoundError(NotFoundError):
    hint = "Run `kiln show <name>` to see the mods in the collection."

    def _get_default_code(self) -> str:
        return "E202"


class RegistryModNotFoundError(NotFoundError):
    hint = "Check the alias or id on the mod database."

    def _get_default_code(self) -> str:
        return "E203"


class NoReleasesError(KilnError):
    """Mod exists but publishes no fetchable release"""

    hint = "The mod has no downloadable file; add it with `kiln add-url` instead."

    def _get_default_code(self) -> str:
        return "E204"


class VersionNotFoundError(KilnError):
    """Pinned release version is not published (anymore)"""

    hint = "Re-add the mod without --version to pin the latest release."

    def _get_default_code(self) -> str:
        return "E205"


class FetchError(KilnError):
    """Network or registry I/O failure"""

    hint = "Check your connection and the URL, then retry."

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, code, context)
        self.status = status
        if status is not None:
            self.context["status_code"] = status

    def _get_default_code(self) -> str:
        return "E300"


class ArtifactWriteError(FetchError):
    """Fetched content could not be written to disk"""

    hint = "Check free disk space and permissions of the data directory."

    def _get_default_code(self) -> str:
        return "E301"


class DuplicateModError(KilnError):
    hint = "Remove the existing entry first if you want to replace it."

    def _get_default_code(self) -> str:
        return "E401"


class AmbiguousModError(KilnError):
    hint = "The collection record was edited by hand; fix kiln.json so every mod is listed once."

    def _get_default_code(self) -> str:
        return "E402"


class CollectionExistsError(KilnError):
    hint = "Pick another name, or delete the existing collection first."

    def _get_default_code(self) -> str:
        return "E403"


class CorruptRecordError(KilnError):
    hint = "The collection's kiln.json is damaged; restore or delete it."

    def _get_default_code(self) -> str:
        return "E404"


class FileConflictError(KilnError):
    """Two entries of a collection would share one artifact file"""

    hint = "Add the mod under another name with `kiln add-url`, or remove the other mod first."

    def _get_default_code(self) -> str:
        return "E405"


class MalformedReferenceError(KilnError):
    """Mod entry matches neither the registry nor the direct shape"""

    hint = 'A mod entry needs either "id" and "version", or "name" and "source".'

    def _get_default_code(self) -> str:
        return "E501"


class CorruptArchiveError(KilnError):
    """A .kiln file could not be decoded"""

    hint = "The .kiln file is damaged or was not produced by Kiln; export it again."

    def _get_default_code(self) -> str:
        return "E502"


__all__ = [
    "KilnError",
    # config
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    "InvalidNameError",
    # lookups
    "NotFoundError",
    "CollectionNotFoundError",
    "ModNotFoundError",
    "RegistryModNotFoundError",
    "NoReleasesError",
    "VersionNotFoundError",
    # fetching
    "FetchError",
    "ArtifactWriteError",
    # collections
    "DuplicateModError",
    "AmbiguousModError",
    "CollectionExistsError",
    "CorruptRecordError",
    "FileConflictError",
    # codec
    "MalformedReferenceError",
    "CorruptArchiveError",
]
