"""
Kiln packager layer

Export and import of .kiln transfer files.
"""

from kiln.packager.kiln_file import TransferCodec, COMPRESSION_LEVEL, KILN_SUFFIX

__all__ = [
    "TransferCodec",
    "COMPRESSION_LEVEL",
    "KILN_SUFFIX",
]
