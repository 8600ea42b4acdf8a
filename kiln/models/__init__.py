"""
Kiln data models

Mod references, collection records and registry models.
"""

from kiln.models.mods import (
    RegistryMod,
    DirectMod,
    ModReference,
    mod_from_dict,
    safe_filename,
    is_http_url,
)
from kiln.models.collection import CollectionState, TransferDescriptor
from kiln.models.api import ResolvedRelease, ReleaseInfo, ModInfo

__all__ = [
    # references
    "RegistryMod",
    "DirectMod",
    "ModReference",
    "mod_from_dict",
    "safe_filename",
    "is_http_url",
    # collections
    "CollectionState",
    "TransferDescriptor",
    # registry
    "ResolvedRelease",
    "ReleaseInfo",
    "ModInfo",
]
