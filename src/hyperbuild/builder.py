"""
Build engine.

Turns parsed build stages into a stored image. Instructions are not
executed: each step is persisted as one layer whose payload is a canonical
description of the step and its position in the chain, so rebuilding the
same instructions yields the same layer digests.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from .dockerfile import ParsedDockerfile
from .manifest import assemble, build_config, canonical_json, serialize_config, serialize_manifest
from .models import Image
from .steps import BuildStage
from .storage.base import Blob, BlobKind
from .storage.blob_store import BlobStore
from .storage.image_store import ImageStore

__all__ = ["BuildEngine"]

logger = logging.getLogger(__name__)


class BuildEngine:
    """Builds images into a blob store and records them in an image store."""

    def __init__(self, blob_store: BlobStore, image_store: ImageStore):
        self.blob_store = blob_store
        self.image_store = image_store

    def build(
        self,
        source: Union[ParsedDockerfile, Sequence[BuildStage]],
        name: str,
        created: Optional[str] = None,
    ) -> Image:
        """
        Build and save an image.

        Every stage produces layers in the blob store; the image is made of
        the final stage's layers, and its config follows the final stage's
        steps.

        Args:
            source: Parsed Dockerfile or its stages
            name: Image name to record
            created: RFC 3339 creation time (defaults to now, UTC)

        Returns:
            The saved Image

        Raises:
            ValueError: If there are no stages or the name is empty
        """
        stages = source.stages if isinstance(source, ParsedDockerfile) else list(source)
        if not stages:
            raise ValueError("Nothing to build: no stages")
        if not name or not name.strip():
            raise ValueError("Image name cannot be empty")

        self.blob_store.init()
        self.image_store.init()

        layers: List[Blob] = []
        for index, stage in enumerate(stages):
            layers = self._build_stage(stage)
            logger.debug(f"Stage {index} ({stage.name or stage.base_image}): {len(layers)} layers")

        final = stages[-1]
        created = created or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        config_doc = build_config(final.steps, layers, created=created)
        config = self.blob_store.put(serialize_config(config_doc), BlobKind.CONFIG)

        manifest = assemble(layers, config)
        self.blob_store.put(serialize_manifest(manifest), BlobKind.MANIFEST)

        image = Image(id=uuid.uuid4().hex, name=name, layers=layers, config=config, manifest=manifest)
        self.image_store.save_image(image)
        logger.info(f"Built {name} ({image.id}): {len(layers)} layers, {image.total_size} bytes")
        return image

    def _build_stage(self, stage: BuildStage) -> List[Blob]:
        layers: List[Blob] = []
        parent: Optional[str] = None
        for step in stage.steps:
            payload = canonical_json({
                "base": stage.base_image,
                "parent": parent,
                "step": step.model_dump(mode="json"),
            })
            blob = self.blob_store.put(payload, BlobKind.LAYER)
            layers.append(blob)
            parent = blob.digest
        return layers
