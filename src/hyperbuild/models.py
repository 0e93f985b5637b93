"""
Data models for OCI documents and built images.

The pydantic models mirror the OCI image-spec JSON documents (field aliases
carry the wire names); ``Image`` ties a stored manifest to its blobs.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .digest import validate_digest
from .storage.base import Blob
from .storage.oci_media_types import OCI_IMAGE_MANIFEST, SCHEMA_VERSION


class Descriptor(BaseModel):
    """Reference to a blob: media type, digest and size."""
    model_config = ConfigDict(populate_by_name=True)

    media_type: str = Field(..., alias="mediaType", description="Blob media type")
    digest: str = Field(..., description="Content digest (sha256:...)")
    size: int = Field(..., ge=0, description="Blob size in bytes")

    @field_validator("digest")
    @classmethod
    def validate_digest_format(cls, v: str) -> str:
        if not validate_digest(v):
            raise ValueError(f"Invalid digest format: {v}")
        return v

    @classmethod
    def for_blob(cls, blob: Blob) -> Descriptor:
        """Descriptor carrying the blob's own media type, digest and size."""
        return cls(media_type=blob.media_type, digest=blob.digest, size=blob.size)


class ImageManifest(BaseModel):
    """
    OCI image manifest.

    ``layers`` is ordered bottom-to-top, the order in which layers are applied.
    """
    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    media_type: Optional[str] = Field(default=OCI_IMAGE_MANIFEST, alias="mediaType")
    config: Descriptor
    layers: List[Descriptor] = Field(default_factory=list)
    annotations: Optional[Dict[str, str]] = None

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        if v != SCHEMA_VERSION:
            raise ValueError(f"Unsupported schemaVersion {v}, expected {SCHEMA_VERSION}")
        return v


class RootFS(BaseModel):
    """Layer chain of an image config; diff_ids are uncompressed layer digests."""
    type: str = "layers"
    diff_ids: List[str] = Field(default_factory=list)


class ContainerConfig(BaseModel):
    """Runtime defaults applied when a container is started from the image."""
    model_config = ConfigDict(populate_by_name=True)

    user: Optional[str] = Field(default=None, alias="User")
    exposed_ports: Optional[Dict[str, dict]] = Field(default=None, alias="ExposedPorts")
    env: Optional[List[str]] = Field(default=None, alias="Env")
    entrypoint: Optional[List[str]] = Field(default=None, alias="Entrypoint")
    cmd: Optional[List[str]] = Field(default=None, alias="Cmd")
    volumes: Optional[Dict[str, dict]] = Field(default=None, alias="Volumes")
    working_dir: Optional[str] = Field(default=None, alias="WorkingDir")
    labels: Optional[Dict[str, str]] = Field(default=None, alias="Labels")
    stop_signal: Optional[str] = Field(default=None, alias="StopSignal")


class ImageConfig(BaseModel):
    """OCI image configuration document."""
    created: Optional[str] = None
    architecture: str = "amd64"
    os: str = "linux"
    config: ContainerConfig = Field(default_factory=ContainerConfig)
    rootfs: RootFS = Field(default_factory=RootFS)


@dataclass
class Image:
    """
    A built image as recorded in the image store.

    Layer bytes stay in the blob store; the image only holds Blob handles.
    """
    id: str
    name: str
    layers: List[Blob]
    config: Blob
    manifest: ImageManifest

    @property
    def total_size(self) -> int:
        """Sum of layer sizes (uncompressed)."""
        return sum(layer.size for layer in self.layers)


__all__ = [
    "Descriptor",
    "ImageManifest",
    "RootFS",
    "ContainerConfig",
    "ImageConfig",
    "Image",
]
