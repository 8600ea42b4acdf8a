"""
Kiln registry layer

Abstract registry capability and the mod database client.
"""

from kiln.api.base import RegistryClient
from kiln.api.moddb import ModDBClient, MODDB_BASE_URL, pick_latest, pick_version

__all__ = [
    "RegistryClient",
    "ModDBClient",
    "MODDB_BASE_URL",
    "pick_latest",
    "pick_version",
]
