"""
Image record store.

Layout under the store root:

    images/<id>/config.json     config document (exact bytes of the config blob)
    images/<id>/manifest.json   manifest document
    images/<id>/name.txt        human-readable image name

Records hold digests only; layer bytes stay in the blob store. Name lookup is
a linear scan over all records.
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List

from ..atomic_write import write_bytes_atomically
from ..errors import ImageNotFound, SerializationError, StoreIOError
from ..manifest import parse_manifest, serialize_manifest
from ..models import Image
from .base import Blob, BlobKind
from .blob_store import BlobStore

__all__ = ["ImageStore"]

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
MANIFEST_FILE = "manifest.json"
NAME_FILE = "name.txt"


class ImageStore:
    """Image records stored next to the blob store they reference."""

    def __init__(self, root: str | Path, blob_store: BlobStore) -> None:
        self.root = Path(root)
        self.images_dir = self.root / "images"
        self.blob_store = blob_store

    def init(self) -> None:
        try:
            self.images_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Cannot create image store at {self.root}: {e}") from e

    def save_image(self, image: Image) -> None:
        """
        Persist an image record.

        The config blob must already be in the blob store; its bytes are
        copied into the record unchanged.

        Raises:
            ValueError: If the image id is not a plain directory name
            BlobNotFound: If the config blob is missing
            StoreIOError: If writing fails
        """
        image_dir = self._image_dir(image.id)
        config_bytes = self.blob_store.get(image.config.digest)

        # Record is assembled in a hidden sibling, then renamed into place whole
        try:
            self.images_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".hb.tmp.", dir=self.images_dir))
        except OSError as e:
            raise StoreIOError(f"Failed to save image {image.id}: {e}") from e

        try:
            write_bytes_atomically(staging / CONFIG_FILE, config_bytes)
            write_bytes_atomically(staging / MANIFEST_FILE, serialize_manifest(image.manifest))
            write_bytes_atomically(staging / NAME_FILE, image.name.encode("utf-8"))
            os.replace(staging, image_dir)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise StoreIOError(f"Failed to save image {image.id}: {e}") from e

        logger.debug(f"Saved image {image.id} as {image.name!r}")

    def get_image(self, image_id: str) -> Image:
        """
        Load an image record by id.

        Layer and config Blobs are rebuilt from the manifest descriptors.

        Raises:
            ImageNotFound: If no record exists for image_id
            SerializationError: If the stored manifest is unreadable
        """
        image_dir = self._image_dir(image_id)
        if not image_dir.is_dir():
            raise ImageNotFound(f"Image not found: {image_id}")

        try:
            manifest = parse_manifest((image_dir / MANIFEST_FILE).read_bytes())
            name = (image_dir / NAME_FILE).read_text(encoding="utf-8").strip()
        except FileNotFoundError as e:
            raise SerializationError(f"Incomplete image record {image_id}: {e}") from e
        except OSError as e:
            raise StoreIOError(f"Failed to read image {image_id}: {e}") from e

        layers = [self._blob_for(d.digest, d.size, BlobKind.LAYER) for d in manifest.layers]
        config = self._blob_for(manifest.config.digest, manifest.config.size, BlobKind.CONFIG)
        return Image(id=image_id, name=name, layers=layers, config=config, manifest=manifest)

    def get_image_by_name(self, name: str) -> Image:
        """
        Find an image by name.

        Scans every record; when several share a name the first id in sorted
        order wins.

        Raises:
            ImageNotFound: If no record carries this name
        """
        for image_id in self.list_images():
            try:
                stored = (self.images_dir / image_id / NAME_FILE).read_text(encoding="utf-8").strip()
            except OSError:
                logger.debug(f"Skipping image {image_id} without a readable name")
                continue
            if stored == name:
                return self.get_image(image_id)
        raise ImageNotFound(f"Image not found: {name}")

    def list_images(self) -> List[str]:
        """Return stored image ids, sorted."""
        if not self.images_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.images_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def remove_image(self, image_id: str) -> None:
        """
        Delete an image record. Referenced blobs are left in place.

        Raises:
            ImageNotFound: If no record exists for image_id
        """
        image_dir = self._image_dir(image_id)
        if not image_dir.is_dir():
            raise ImageNotFound(f"Image not found: {image_id}")
        try:
            shutil.rmtree(image_dir)
        except OSError as e:
            raise StoreIOError(f"Failed to remove image {image_id}: {e}") from e
        logger.debug(f"Removed image {image_id}")

    def collect_garbage(self) -> int:
        """
        Reclaim blobs no image references.

        Reserved: nothing is reclaimed yet and 0 bytes are reported.
        """
        return 0

    def _image_dir(self, image_id: str) -> Path:
        if not image_id or "/" in image_id or "\\" in image_id or image_id in (".", ".."):
            raise ValueError(f"Invalid image id: {image_id!r}")
        return self.images_dir / image_id

    def _blob_for(self, digest: str, size: int, kind: BlobKind) -> Blob:
        path = self.blob_store.blob_path(digest, kind)
        return Blob(digest=digest, size=size, kind=kind, path=path)
