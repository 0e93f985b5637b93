"""
OCI media types and constants.

Single source of truth for all OCI-related media types and constants.
"""
from __future__ import annotations

OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_IMAGE_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"

# Docker v2 equivalents registries may hand back on pull
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"

# Accept header order for manifest GETs
ACCEPTED_MANIFEST_TYPES = [
    OCI_IMAGE_MANIFEST,
    DOCKER_MANIFEST_V2,
]

SCHEMA_VERSION = 2

DEFAULT_REGISTRY = "https://registry-1.docker.io"
DEFAULT_TAG = "latest"
DEFAULT_NAMESPACE = "library"


__all__ = [
    "OCI_IMAGE_MANIFEST",
    "OCI_IMAGE_CONFIG",
    "OCI_IMAGE_LAYER",
    "DOCKER_MANIFEST_V2",
    "ACCEPTED_MANIFEST_TYPES",
    "SCHEMA_VERSION",
    "DEFAULT_REGISTRY",
    "DEFAULT_TAG",
    "DEFAULT_NAMESPACE",
]
