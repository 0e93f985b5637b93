"""
Content-addressable blob store.

Layout under the store root:

    layers/<hex>.tar.gz       gzip-compressed layer payloads
    blobs/sha256/<hex>        configs and manifests, stored verbatim

Blobs are keyed by the digest of their logical bytes, so storing the same
payload twice keeps a single copy.
"""
from __future__ import annotations

import gzip
import logging
import zlib
from pathlib import Path
from typing import Iterator, Optional, Tuple

from ..atomic_write import write_bytes_atomically
from ..digest import compute_digest, validate_digest
from ..errors import BlobCorrupt, BlobNotFound, StoreIOError
from .base import Blob, BlobKind

__all__ = ["BlobStore"]

logger = logging.getLogger(__name__)

LAYER_SUFFIX = ".tar.gz"


class BlobStore:
    """
    Filesystem blob store rooted at ``root``.

    Single writer per root is assumed; writes are atomic so a crash never
    leaves a partial blob under its final name.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.layers_dir = self.root / "layers"
        self.blobs_dir = self.root / "blobs" / "sha256"

    def init(self) -> None:
        """Create the store directories."""
        try:
            self.layers_dir.mkdir(parents=True, exist_ok=True)
            self.blobs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Cannot create blob store at {self.root}: {e}") from e

    def put(self, data: bytes, kind: BlobKind) -> Blob:
        """
        Store ``data`` and return its Blob.

        Layers are gzip-compressed on disk but digest and size always describe
        the uncompressed input. A digest already stored under any kind is
        not written again; the returned Blob points at the existing file.

        Args:
            data: Logical payload bytes
            kind: Blob kind (decides compression and location)

        Returns:
            Blob describing the stored payload

        Raises:
            StoreIOError: If the write fails
        """
        digest = compute_digest(data)

        # One copy per digest, whatever kind it was first stored as
        found = self._lookup(digest)
        if found is not None:
            logger.debug(f"Blob {digest} already stored, skipping write")
            return Blob(digest=digest, size=len(data), kind=kind, path=found[0])

        path = self._path_for(digest, kind)
        payload = _compress(data) if kind is BlobKind.LAYER else bytes(data)
        try:
            write_bytes_atomically(path, payload)
        except OSError as e:
            raise StoreIOError(f"Failed to write blob {digest}: {e}") from e

        logger.debug(f"Stored {kind.value} blob {digest} ({len(data)} bytes, {len(payload)} on disk)")
        return Blob(digest=digest, size=len(data), kind=kind, path=path)

    def get(self, digest: str) -> bytes:
        """
        Return the logical bytes stored under ``digest``, verified.

        Raises:
            ValueError: If digest is malformed
            BlobNotFound: If nothing is stored under digest
            BlobCorrupt: If the content no longer matches digest
        """
        path, kind = self._find(digest)
        raw = self._read(path)

        if kind is BlobKind.LAYER:
            try:
                data = gzip.decompress(raw)
            except (OSError, EOFError, zlib.error) as e:
                raise BlobCorrupt(f"Layer {digest} is not a readable gzip stream: {e}",
                                  expected=digest) from e
        else:
            data = raw

        actual = compute_digest(data)
        if actual != digest:
            raise BlobCorrupt(f"Digest mismatch for blob {digest}: got {actual}",
                              expected=digest, actual=actual)
        return data

    def read_raw(self, digest: str) -> bytes:
        """Return the bytes exactly as stored (compressed for layers), unverified."""
        path, _ = self._find(digest)
        return self._read(path)

    def blob_path(self, digest: str, kind: BlobKind) -> Path:
        """Path the blob is stored at, or where a blob of this kind would go."""
        if not validate_digest(digest):
            raise ValueError(f"Invalid digest format: {digest}")
        found = self._lookup(digest)
        return found[0] if found is not None else self._path_for(digest, kind)

    def locate(self, digest: str) -> Path:
        """Return the on-disk path of a stored blob."""
        path, _ = self._find(digest)
        return path

    def exists(self, digest: str) -> bool:
        """Check if a blob is stored. Never raises for malformed digests."""
        if not validate_digest(digest):
            return False
        return self._lookup(digest) is not None

    def remove(self, digest: str) -> None:
        """
        Delete a stored blob.

        Raises:
            BlobNotFound: If nothing is stored under digest
        """
        self._find(digest)
        # Clear every location the digest could occupy
        for kind in (BlobKind.LAYER, BlobKind.CONFIG):
            try:
                self._path_for(digest, kind).unlink(missing_ok=True)
            except OSError as e:
                raise StoreIOError(f"Failed to remove blob {digest}: {e}") from e
        logger.debug(f"Removed blob {digest}")

    def list(self) -> Iterator[str]:
        """Yield every stored digest in sorted order. Each call starts afresh."""
        hexes = set()
        if self.layers_dir.is_dir():
            for entry in self.layers_dir.iterdir():
                if entry.is_file() and entry.name.endswith(LAYER_SUFFIX):
                    hexes.add(entry.name[: -len(LAYER_SUFFIX)])
        if self.blobs_dir.is_dir():
            for entry in self.blobs_dir.iterdir():
                if entry.is_file() and not entry.name.startswith("."):
                    hexes.add(entry.name)

        for hex_part in sorted(hexes):
            digest = f"sha256:{hex_part}"
            if validate_digest(digest):
                yield digest

    def _path_for(self, digest: str, kind: BlobKind) -> Path:
        hex_part = digest.split(":", 1)[1]
        if kind is BlobKind.LAYER:
            return self.layers_dir / f"{hex_part}{LAYER_SUFFIX}"
        return self.blobs_dir / hex_part

    def _lookup(self, digest: str) -> Optional[Tuple[Path, BlobKind]]:
        layer_path = self._path_for(digest, BlobKind.LAYER)
        if layer_path.is_file():
            return layer_path, BlobKind.LAYER
        blob_path = self._path_for(digest, BlobKind.CONFIG)
        if blob_path.is_file():
            # Configs and manifests share a directory; verbatim either way
            return blob_path, BlobKind.CONFIG
        return None

    def _find(self, digest: str) -> Tuple[Path, BlobKind]:
        if not validate_digest(digest):
            raise ValueError(f"Invalid digest format: {digest}")
        found = self._lookup(digest)
        if found is None:
            raise BlobNotFound(f"Blob not found: {digest}")
        return found

    @staticmethod
    def _read(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFound(f"Blob not found: {path.name}") from e
        except OSError as e:
            raise StoreIOError(f"Failed to read {path}: {e}") from e


def _compress(data: bytes) -> bytes:
    # mtime=0 keeps the compressed file identical across runs
    return gzip.compress(data, mtime=0)
