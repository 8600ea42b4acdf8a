"""
Kiln download layer

Streams fetched artifacts to disk.
"""

from kiln.download.manager import DownloadManager

__all__ = [
    "DownloadManager",
]
