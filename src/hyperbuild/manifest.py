"""
Manifest and config assembly.

Builds the OCI image config and manifest documents from stored blobs and
serializes them with a stable encoding, so the bytes that get digested are
the bytes that get stored and uploaded.
"""
from __future__ import annotations

import json
import posixpath
from typing import Iterable, Sequence

from pydantic import ValidationError

from .errors import SerializationError
from .models import ContainerConfig, Descriptor, ImageConfig, ImageManifest, RootFS
from .steps import (
    BuildStep, Cmd, Entrypoint, Env, Expose, Label, StopSignal, User, Volume, Workdir,
)
from .storage.base import Blob, BlobKind
from .storage.oci_media_types import OCI_IMAGE_MANIFEST, SCHEMA_VERSION

__all__ = [
    "assemble",
    "build_config",
    "serialize_manifest",
    "parse_manifest",
    "serialize_config",
    "parse_config",
    "canonical_json",
]


def canonical_json(document: dict) -> bytes:
    """Stable JSON encoding: sorted keys, compact separators, UTF-8."""
    return json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8")


def assemble(layers: Sequence[Blob], config: Blob) -> ImageManifest:
    """
    Build an image manifest referencing ``config`` and ``layers``.

    Descriptor digests and sizes are copied from the blobs; layer order is
    preserved. An empty layer list is valid.

    Args:
        layers: Layer blobs, bottom-to-top
        config: Config blob

    Returns:
        ImageManifest with schemaVersion 2 and the OCI manifest media type

    Raises:
        ValueError: If a blob of the wrong kind is passed
    """
    if config.kind is not BlobKind.CONFIG:
        raise ValueError(f"Expected a config blob, got {config.kind.value} blob {config.digest}")
    for layer in layers:
        if layer.kind is not BlobKind.LAYER:
            raise ValueError(f"Expected a layer blob, got {layer.kind.value} blob {layer.digest}")

    return ImageManifest(
        schema_version=SCHEMA_VERSION,
        media_type=OCI_IMAGE_MANIFEST,
        config=Descriptor.for_blob(config),
        layers=[Descriptor.for_blob(layer) for layer in layers],
    )


def build_config(
    steps: Iterable[BuildStep],
    layers: Sequence[Blob],
    *,
    created: str | None = None,
    architecture: str = "amd64",
    os: str = "linux",
) -> ImageConfig:
    """
    Derive the image config from build steps.

    Runtime defaults (env, cmd, entrypoint, workdir, user, ports, volumes,
    labels, stop signal) follow the steps in order, later steps winning.
    ``rootfs.diff_ids`` are the uncompressed layer digests.
    """
    env: dict[str, str] = {}
    labels: dict[str, str] = {}
    ports: dict[str, dict] = {}
    volumes: dict[str, dict] = {}
    runtime = ContainerConfig()

    for step in steps:
        if isinstance(step, Env):
            env.update(step.values)
        elif isinstance(step, Label):
            labels.update(step.values)
        elif isinstance(step, Expose):
            ports.update({port: {} for port in step.ports})
        elif isinstance(step, Volume):
            volumes.update({volume: {} for volume in step.volumes})
        elif isinstance(step, Cmd):
            runtime.cmd = list(step.command)
        elif isinstance(step, Entrypoint):
            runtime.entrypoint = list(step.command)
        elif isinstance(step, Workdir):
            runtime.working_dir = posixpath.join(runtime.working_dir or "/", step.path)
        elif isinstance(step, User):
            runtime.user = step.user
        elif isinstance(step, StopSignal):
            runtime.stop_signal = step.signal

    runtime.env = [f"{key}={value}" for key, value in env.items()] or None
    runtime.labels = labels or None
    runtime.exposed_ports = ports or None
    runtime.volumes = volumes or None

    return ImageConfig(
        created=created,
        architecture=architecture,
        os=os,
        config=runtime,
        rootfs=RootFS(type="layers", diff_ids=[layer.digest for layer in layers]),
    )


def serialize_manifest(manifest: ImageManifest) -> bytes:
    return canonical_json(manifest.model_dump(by_alias=True, exclude_none=True, mode="json"))


def parse_manifest(data: bytes) -> ImageManifest:
    """
    Parse a manifest document.

    Raises:
        SerializationError: If data is not valid JSON or not a valid manifest
    """
    try:
        return ImageManifest.model_validate_json(data)
    except ValidationError as e:
        raise SerializationError(f"Malformed image manifest: {e}") from e


def serialize_config(config: ImageConfig) -> bytes:
    return canonical_json(config.model_dump(by_alias=True, exclude_none=True, mode="json"))


def parse_config(data: bytes) -> ImageConfig:
    """
    Parse an image config document.

    Raises:
        SerializationError: If data is not valid JSON or not a valid config
    """
    try:
        return ImageConfig.model_validate_json(data)
    except ValidationError as e:
        raise SerializationError(f"Malformed image config: {e}") from e
