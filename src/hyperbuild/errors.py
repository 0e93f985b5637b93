"""
Error taxonomy for hyperbuild.

Every component raises one of these instead of returning sentinel values.
Nothing is retried or rolled back here; the CLI maps each class to an exit
code (see operations.mappers).
"""
from __future__ import annotations

from typing import Optional


class HyperbuildError(Exception):
    """Base class for all hyperbuild errors."""
    pass


class InvalidReference(HyperbuildError, ValueError):
    """Raised when an image reference string cannot be resolved."""
    pass


class NotFound(HyperbuildError):
    """A store lookup found nothing."""
    pass


class BlobNotFound(NotFound):
    """No blob is stored under the requested digest."""
    pass


class ImageNotFound(NotFound):
    """No image record matches the requested id or name."""
    pass


class Corrupt(HyperbuildError):
    """Stored or downloaded content does not match its digest."""
    pass


class BlobCorrupt(Corrupt):
    """
    Blob content failed digest verification.

    Raised when:
    - BlobStore.get: recomputed digest != requested digest
    - BlobStore.get: gzip stream of a layer cannot be decoded
    - RegistryClient.pull with verify_digests=True: served bytes != descriptor digest
    """

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class NetworkError(HyperbuildError):
    """
    A registry request failed.

    ``status`` is the HTTP status code of the failing response, or None for
    transport-level failures (connection refused, timeouts).
    """

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class UploadFailed(NetworkError):
    """Blob upload initiation or completion was rejected."""
    pass


class ManifestUploadFailed(NetworkError):
    """Manifest PUT was rejected."""
    pass


class ManifestDownloadFailed(NetworkError):
    """Manifest GET failed or returned a malformed document."""
    pass


class BlobDownloadFailed(NetworkError):
    """Blob GET failed."""
    pass


class SerializationError(HyperbuildError):
    """A manifest or config document could not be parsed or produced."""
    pass


class StoreIOError(HyperbuildError, OSError):
    """Filesystem failure inside a store."""
    pass


__all__ = [
    "HyperbuildError",
    "InvalidReference",
    "NotFound",
    "BlobNotFound",
    "ImageNotFound",
    "Corrupt",
    "BlobCorrupt",
    "NetworkError",
    "UploadFailed",
    "ManifestUploadFailed",
    "ManifestDownloadFailed",
    "BlobDownloadFailed",
    "SerializationError",
    "StoreIOError",
]
