"""
Image reference resolution.

Turns a human-readable reference such as ``localhost:5000/team/app:v2`` into
the registry endpoint, repository path and tag used on the wire.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidReference
from .storage.oci_media_types import DEFAULT_NAMESPACE, DEFAULT_REGISTRY, DEFAULT_TAG

__all__ = ["ImageReference", "resolve"]

_SCHEMES = ("http://", "https://")
_PLAIN_HTTP_HOSTS = ("localhost:", "127.0.0.1:")


@dataclass(frozen=True)
class ImageReference:
    """
    Resolved components of an image reference.

    Attributes:
        endpoint: Scheme-qualified registry base URL (no trailing slash)
        repository: Repository path on that registry (e.g. "library/alpine")
        tag: Tag to push or pull
        original: Reference string as given, for messages
    """
    endpoint: str
    repository: str
    tag: str
    original: str = ""

    def __str__(self) -> str:
        host = self.endpoint.split("://", 1)[-1]
        return f"{host}/{self.repository}:{self.tag}"


def resolve(reference: str, default_endpoint: str = DEFAULT_REGISTRY) -> ImageReference:
    """
    Resolve an image reference.

    Rules:
    - Text before the first "/" is a registry host iff it contains "." or ":"
      (or the reference starts with an explicit http:// or https:// scheme).
    - Hosts get http:// for localhost:* and 127.0.0.1:*, https:// otherwise.
    - Without a host the repository is "library/<reference>" on
      ``default_endpoint``.
    - The tag is taken from the last ":" of the last path segment only, so a
      port in the host is never mistaken for a tag; no tag means "latest".

    Args:
        reference: Reference string
        default_endpoint: Registry used when the reference names no host

    Returns:
        ImageReference

    Raises:
        InvalidReference: If reference is empty or names no repository

    Examples:
        >>> resolve("myimage")
        ImageReference(endpoint='https://registry-1.docker.io', repository='library/myimage', tag='latest', ...)

        >>> resolve("localhost:5000/myimage:v2")
        ImageReference(endpoint='http://localhost:5000', repository='myimage', tag='v2', ...)
    """
    if reference is None or not reference.strip():
        raise InvalidReference("Image reference cannot be empty")

    text = reference.strip()
    scheme = ""
    for candidate in _SCHEMES:
        if text.startswith(candidate):
            scheme = candidate
            text = text[len(candidate):]
            break

    endpoint = default_endpoint.rstrip("/")
    path = f"{DEFAULT_NAMESPACE}/{text}"

    if "/" in text:
        head, rest = text.split("/", 1)
        if scheme or "." in head or ":" in head:
            endpoint = _endpoint_for(head, scheme)
            path = rest
    elif scheme:
        raise InvalidReference(f"Reference names a registry but no repository: {reference}")

    repository, tag = _split_tag(path)
    if not repository or repository.endswith("/") or not repository.split("/")[-1]:
        raise InvalidReference(f"Reference names no repository: {reference}")

    return ImageReference(endpoint=endpoint, repository=repository, tag=tag, original=reference)


def _endpoint_for(host: str, scheme: str) -> str:
    if not host:
        raise InvalidReference("Registry host cannot be empty")
    if scheme:
        return f"{scheme}{host}"
    if host.startswith(_PLAIN_HTTP_HOSTS):
        return f"http://{host}"
    return f"https://{host}"


def _split_tag(path: str) -> tuple[str, str]:
    """Split "a/b/name:tag" on the last ":" of the final segment."""
    prefix, slash, last = path.rpartition("/")
    name, colon, tag = last.rpartition(":")
    if not colon:
        return path, DEFAULT_TAG
    return f"{prefix}{slash}{name}", tag or DEFAULT_TAG
