"""
.kiln transfer files

A .kiln file is ``zlib(msgpack(descriptor))`` where the descriptor is
``{"name": str, "mods": [mod, ...]}`` and every mod is one of the untagged
shapes ``{"id", "version"}`` or ``{"name", "source"}``. There is no header
beyond zlib's own.
"""

import zlib
from pathlib import Path

import aiofiles
import msgpack

from kiln.exceptions import CorruptArchiveError, MalformedReferenceError
from kiln.models import CollectionState, TransferDescriptor, mod_from_dict

KILN_SUFFIX = ".kiln"
COMPRESSION_LEVEL = 9
DESCRIPTOR_KEYS = frozenset({"name", "mods"})


class TransferCodec:
    """Encodes collections into .kiln blobs and back"""

    compression_level = COMPRESSION_LEVEL

    def encode(self, state: CollectionState) -> bytes:
        descriptor = TransferDescriptor.from_state(state)
        packed = msgpack.packb(descriptor.to_dict(), use_bin_type=True)
        return zlib.compress(packed, self.compression_level)

    def decode(self, blob: bytes) -> TransferDescriptor:
        """
        Decode a .kiln blob.

        Raises:
            CorruptArchiveError: bad compressed data, bad msgpack, or a
                structure that is not a descriptor
        """
        try:
            packed = zlib.decompress(blob)
        except zlib.error as e:
            raise CorruptArchiveError(f"decompression failed: {e}") from e

        try:
            data = msgpack.unpackb(packed, raw=False)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise CorruptArchiveError(f"not a msgpack document: {e}") from e

        return self._to_descriptor(data)

    @staticmethod
    def _to_descriptor(data) -> TransferDescriptor:
        if not isinstance(data, dict) or set(data) != DESCRIPTOR_KEYS:
            keys = sorted(map(str, data)) if isinstance(data, dict) else type(data).__name__
            raise CorruptArchiveError(
                f"expected a map with keys {sorted(DESCRIPTOR_KEYS)}, got {keys}"
            )

        name, mods = data["name"], data["mods"]
        if not isinstance(name, str) or not name:
            raise CorruptArchiveError("collection name must be a non-empty string")
        if not isinstance(mods, list):
            raise CorruptArchiveError("'mods' must be a list")

        try:
            return TransferDescriptor(name=name, mods=[mod_from_dict(m) for m in mods])
        except MalformedReferenceError as e:
            raise CorruptArchiveError(f"malformed mod entry: {e.message}", context=e.context) from e

    async def write(self, state: CollectionState, path: Path) -> Path:
        blob = self.encode(state)
        async with aiofiles.open(path, "wb") as f:
            await f.write(blob)
        return path

    async def read(self, path: Path) -> TransferDescriptor:
        async with aiofiles.open(path, "rb") as f:
            blob = await f.read()
        return self.decode(blob)
