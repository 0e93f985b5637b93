"""
Storage value types shared by the blob and image stores.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .oci_media_types import OCI_IMAGE_CONFIG, OCI_IMAGE_LAYER, OCI_IMAGE_MANIFEST


class BlobKind(str, Enum):
    """What a stored blob holds; decides location, compression and media type."""
    LAYER = "layer"
    CONFIG = "config"
    MANIFEST = "manifest"

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]


_MEDIA_TYPES = {
    BlobKind.LAYER: OCI_IMAGE_LAYER,
    BlobKind.CONFIG: OCI_IMAGE_CONFIG,
    BlobKind.MANIFEST: OCI_IMAGE_MANIFEST,
}


@dataclass(frozen=True)
class Blob:
    """
    A payload persisted in the blob store.

    Invariants:
    - digest: "sha256:" + 64 lowercase hex over the logical (uncompressed) bytes
    - size: byte length of the logical bytes; for layers this is the length
      before compression, which is also what manifests carry
    - path: location of the stored bytes (gzip-compressed for layers)
    """
    digest: str
    size: int
    kind: BlobKind
    path: Path

    @property
    def media_type(self) -> str:
        return self.kind.media_type


__all__ = ["Blob", "BlobKind"]
