"""
Operations Facade - application service layer.

Provides a clean interface between the CLI and the build engine, stores and
registry client, centralizing command orchestration and configuration while
keeping CLI commands thin and testable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx

from ..builder import BuildEngine
from ..dockerfile import parse_dockerfile_path
from ..errors import ImageNotFound
from ..models import Image
from ..reference import ImageReference, resolve
from ..registry_client import RegistryClient
from ..settings import Settings
from ..storage.blob_store import BlobStore
from ..storage.image_store import ImageStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes output policy so it is not scattered across commands.
    """
    human: bool = True            # Human text output
    verbose: bool = False         # Show detailed output


@dataclass(frozen=True)
class PushResult:
    """Outcome of a push: where the image went and the manifest digest."""
    reference: ImageReference
    image: Image
    manifest_digest: str


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Stores are rooted at ``settings.store_dir``;
    a registry client is created per push or pull for the endpoint the image
    reference resolves to. Exceptions bubble up for central exit-code mapping.
    """

    def __init__(self, config: OpsConfig, settings: Optional[Settings] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize Operations facade.

        Args:
            config: Output configuration
            settings: Optional settings (if None, loaded from environment)
            transport: Optional httpx transport for registry clients (tests)
        """
        self.cfg = config

        if settings is None:
            from ..settings import create_settings_from_env
            settings = create_settings_from_env()
        self.settings = settings
        self.transport = transport

        self.blob_store = BlobStore(settings.store_dir)
        self.image_store = ImageStore(settings.store_dir, self.blob_store)
        self.engine = BuildEngine(self.blob_store, self.image_store)

    def build(self, dockerfile: str | Path, name: str) -> Image:
        """
        Build an image from a Dockerfile and record it under ``name``.

        Raises:
            FileNotFoundError: If the Dockerfile does not exist
            ValueError: If the Dockerfile is malformed
        """
        parsed = parse_dockerfile_path(dockerfile)
        return self.engine.build(parsed, name)

    def push(self, name: str, dockerfile: Optional[str | Path] = None) -> PushResult:
        """
        Push a stored image to the registry its name resolves to.

        When no image is stored under ``name`` and a Dockerfile is given, the
        image is built first.

        Raises:
            InvalidReference: If name is not a valid image reference
            ImageNotFound: If the image is absent and no Dockerfile was given
            NetworkError: If the registry rejects an upload
        """
        reference = resolve(name, self.settings.default_registry)
        try:
            image = self.image_store.get_image_by_name(name)
        except ImageNotFound:
            if dockerfile is None:
                raise
            logger.info(f"Image {name} not stored, building from {dockerfile}")
            image = self.build(dockerfile, name)

        with self._client(reference) as client:
            digest = client.push(reference.repository, reference.tag, image)
        return PushResult(reference=reference, image=image, manifest_digest=digest)

    def pull(self, name: str, dest: str | Path) -> List[Path]:
        """
        Download an image's layers and config into ``dest``.

        Pulled content goes straight to ``dest``; the local stores are not
        touched.
        """
        reference = resolve(name, self.settings.default_registry)
        with self._client(reference) as client:
            return client.pull(reference.repository, reference.tag, dest)

    def images(self) -> List[Image]:
        """All stored images, ordered by id."""
        return [self.image_store.get_image(image_id) for image_id in self.image_store.list_images()]

    def remove(self, name_or_id: str) -> Image:
        """
        Remove an image record, looked up by id first, then by name.

        Blobs stay in the blob store.

        Raises:
            ImageNotFound: If neither an id nor a name matches
        """
        if name_or_id in self.image_store.list_images():
            image = self.image_store.get_image(name_or_id)
        else:
            image = self.image_store.get_image_by_name(name_or_id)
        self.image_store.remove_image(image.id)
        logger.info(f"Removed image {image.name} ({image.id})")
        return image

    def gc(self) -> int:
        """Reclaim unreferenced blobs; returns bytes reclaimed."""
        return self.image_store.collect_garbage()

    def _client(self, reference: ImageReference) -> RegistryClient:
        return RegistryClient(
            reference.endpoint,
            timeout=self.settings.http_timeout_s,
            retries=self.settings.http_retry,
            backoff=self.settings.http_backoff_s,
            verify_digests=self.settings.verify_pulled_blobs,
            transport=self.transport,
        )
