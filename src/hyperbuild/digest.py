"""
Content digests.

All blobs (layers, configs, manifests) are identified by the SHA-256 of their
logical bytes in the canonical ``sha256:<hex>`` form.
"""
from __future__ import annotations

import hashlib
import re
from typing import Union

__all__ = [
    "EMPTY_DIGEST",
    "compute_digest",
    "validate_digest",
    "verify_digest",
    "digest_to_filename",
]

_DIGEST_RE = re.compile(r"sha256:[a-f0-9]{64}")

EMPTY_DIGEST = "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def compute_digest(data: Union[bytes, bytearray, memoryview]) -> str:
    """
    Compute the content digest of ``data``.

    Args:
        data: Exact bytes to hash (for layers: the uncompressed payload)

    Returns:
        Digest string in the form "sha256:<64 lowercase hex>"
    """
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def validate_digest(digest: str) -> bool:
    """Return True if ``digest`` is a well-formed sha256 digest."""
    if not isinstance(digest, str):
        return False
    return bool(_DIGEST_RE.fullmatch(digest))


def verify_digest(data: Union[bytes, bytearray, memoryview], expected_digest: str) -> bool:
    """
    Check that ``data`` hashes to ``expected_digest``.

    Raises:
        ValueError: If expected_digest is not a valid digest
    """
    if not validate_digest(expected_digest):
        raise ValueError(f"Invalid digest format: {expected_digest}")
    return compute_digest(data) == expected_digest


def digest_to_filename(digest: str) -> str:
    """Filesystem-safe form of a digest ("sha256:ab.." -> "sha256_ab..")."""
    return digest.replace(":", "_")
