"""
Registry client for the OCI Distribution API.

Pushes locally built images (blobs first, manifest last) and pulls remote
images into a plain output directory. Only the unauthenticated, monolithic
upload flow is spoken:

    POST /v2/<repo>/blobs/uploads/           -> Location header
    PUT  <location>?digest=<digest>          blob bytes
    PUT  /v2/<repo>/manifests/<tag>          manifest document
    GET  /v2/<repo>/manifests/<tag>
    GET  /v2/<repo>/blobs/<digest>
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Type
from urllib.parse import urljoin

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import __version__
from .atomic_write import write_bytes_atomically
from .digest import compute_digest, digest_to_filename, verify_digest
from .errors import (
    BlobCorrupt,
    BlobDownloadFailed,
    BlobNotFound,
    ManifestDownloadFailed,
    ManifestUploadFailed,
    NetworkError,
    SerializationError,
    StoreIOError,
    UploadFailed,
)
from .manifest import parse_manifest, serialize_manifest
from .models import Descriptor, Image, ImageManifest
from .storage.base import Blob
from .storage.oci_media_types import ACCEPTED_MANIFEST_TYPES, OCI_IMAGE_MANIFEST

__all__ = ["RegistryClient", "TRANSIENT_ERRORS"]

logger = logging.getLogger(__name__)

# Transport failures worth another attempt; HTTP error statuses never are
TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


class RegistryClient:
    """
    HTTP client for one registry endpoint.

    Every request runs under ``timeout`` seconds. Transport failures are
    retried ``retries`` extra times with exponential backoff; a response with
    an error status fails immediately.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        retries: int = 0,
        backoff: float = 0.5,
        verify_digests: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize registry client.

        Args:
            endpoint: Scheme-qualified registry URL (e.g. "http://localhost:5000")
            timeout: Per-request timeout in seconds
            retries: Extra attempts for transport failures (0 = no retry)
            backoff: Exponential backoff multiplier in seconds
            verify_digests: Check pulled blobs against their descriptor digests
            transport: Optional httpx transport (tests inject a mock here)
        """
        if retries < 0:
            raise ValueError(f"retries must be non-negative, got {retries}")
        self.endpoint = endpoint.rstrip("/")
        self.retries = retries
        self.backoff = backoff
        self.verify_digests = verify_digests

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
            headers={"User-Agent": f"hyperbuild/{__version__}"},
        )

    # Push

    def push(self, repository: str, tag: str, image: Image) -> str:
        """
        Upload an image: every layer, then the config, then the manifest.

        The manifest is only sent once every blob it references has been
        accepted. Blobs are always re-uploaded; there is no existence check
        and nothing is rolled back when a later step fails.

        Args:
            repository: Repository path on the registry
            tag: Tag to publish
            image: Locally stored image

        Returns:
            Digest of the uploaded manifest document

        Raises:
            UploadFailed: If a blob upload is rejected
            ManifestUploadFailed: If the manifest PUT is rejected
            BlobNotFound: If a local blob is missing
        """
        self._check_manifest_covers(image)
        logger.info(f"Pushing {repository}:{tag} to {self.endpoint} "
                    f"({len(image.layers)} layers)")

        for layer in image.layers:
            self.upload_blob(repository, layer.digest, _read_stored(layer))
        self.upload_blob(repository, image.config.digest, _read_stored(image.config))

        manifest_digest = self.upload_manifest(repository, tag, serialize_manifest(image.manifest))
        logger.info(f"Pushed {repository}:{tag} ({manifest_digest})")
        return manifest_digest

    def upload_blob(self, repository: str, digest: str, data: bytes) -> str:
        """
        Monolithic blob upload: POST to open a session, PUT the bytes.

        Raises:
            UploadFailed: On error status at either step or a missing Location
        """
        response = self._send(
            "POST", f"{self.endpoint}/v2/{repository}/blobs/uploads/", error=UploadFailed,
        )
        _check(response, UploadFailed, f"Upload initiation failed for {digest}")

        location = response.headers.get("Location")
        if not location:
            raise UploadFailed(
                f"Registry returned no Location header for upload of {digest}",
                status=response.status_code,
                body=response.text,
            )
        try:
            upload_url = urljoin(f"{self.endpoint}/", location)
        except ValueError as e:
            raise UploadFailed(
                f"Registry returned an unusable Location for upload of {digest}: {location!r}",
                status=response.status_code,
                body=response.text,
            ) from e

        response = self._send(
            "PUT",
            upload_url,
            error=UploadFailed,
            params={"digest": digest},
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        _check(response, UploadFailed, f"Upload failed for {digest}")

        logger.debug(f"Uploaded blob {digest} ({len(data)} bytes) to {repository}")
        return digest

    def upload_manifest(self, repository: str, tag: str, data: bytes) -> str:
        """
        PUT a manifest document under ``tag``.

        Returns:
            Digest the registry reports, or the digest of ``data``

        Raises:
            ManifestUploadFailed: On error status
        """
        response = self._send(
            "PUT",
            f"{self.endpoint}/v2/{repository}/manifests/{tag}",
            error=ManifestUploadFailed,
            content=data,
            headers={"Content-Type": OCI_IMAGE_MANIFEST},
        )
        _check(response, ManifestUploadFailed, f"Manifest upload failed for {repository}:{tag}")
        return response.headers.get("Docker-Content-Digest") or compute_digest(data)

    # Pull

    def pull(self, repository: str, tag: str, output_dir: str | Path) -> List[Path]:
        """
        Download an image into ``output_dir``.

        Writes ``layer_<digest>.tar.gz`` per layer in manifest order, then
        ``config_<digest>.json``, with ":" in the digest replaced by "_".
        Downloaded bytes are written as served; they are checked against the
        descriptor digests only when ``verify_digests`` is set.

        Returns:
            Written file paths, layers first, config last

        Raises:
            ManifestDownloadFailed: If the manifest cannot be fetched or parsed
            BlobDownloadFailed: If a blob cannot be fetched
            BlobCorrupt: If verification is enabled and a blob mismatches
            StoreIOError: If writing to output_dir fails
        """
        manifest = self.get_manifest(repository, tag)
        output_dir = Path(output_dir)
        logger.info(f"Pulling {repository}:{tag} from {self.endpoint} "
                    f"({len(manifest.layers)} layers)")

        written: List[Path] = []
        for descriptor in manifest.layers:
            data = self._fetch_checked(repository, descriptor)
            target = output_dir / f"layer_{digest_to_filename(descriptor.digest)}.tar.gz"
            written.append(_write_output(target, data))

        data = self._fetch_checked(repository, manifest.config)
        target = output_dir / f"config_{digest_to_filename(manifest.config.digest)}.json"
        written.append(_write_output(target, data))

        logger.info(f"Pulled {repository}:{tag} into {output_dir}")
        return written

    def get_manifest(self, repository: str, tag: str) -> ImageManifest:
        """
        Fetch and parse the manifest for ``tag``.

        Raises:
            ManifestDownloadFailed: On error status or a malformed document
        """
        response = self._send(
            "GET",
            f"{self.endpoint}/v2/{repository}/manifests/{tag}",
            error=ManifestDownloadFailed,
            headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)},
        )
        _check(response, ManifestDownloadFailed, f"Manifest download failed for {repository}:{tag}")

        try:
            return parse_manifest(response.content)
        except SerializationError as e:
            raise ManifestDownloadFailed(
                f"Malformed manifest for {repository}:{tag}: {e}",
                status=response.status_code,
                body=response.text,
            ) from e

    def get_blob(self, repository: str, digest: str) -> bytes:
        """
        Fetch blob bytes by digest.

        Raises:
            BlobDownloadFailed: On error status
        """
        response = self._send(
            "GET", f"{self.endpoint}/v2/{repository}/blobs/{digest}", error=BlobDownloadFailed,
        )
        _check(response, BlobDownloadFailed, f"Blob download failed for {digest}")
        logger.debug(f"Downloaded blob {digest} ({len(response.content)} bytes)")
        return response.content

    # Internals

    def _fetch_checked(self, repository: str, descriptor: Descriptor) -> bytes:
        data = self.get_blob(repository, descriptor.digest)
        if self.verify_digests and not verify_digest(data, descriptor.digest):
            actual = compute_digest(data)
            raise BlobCorrupt(
                f"Pulled blob does not match {descriptor.digest}: got {actual}",
                expected=descriptor.digest,
                actual=actual,
            )
        return data

    def _send(self, method: str, url: str, *, error: Type[NetworkError], **kwargs) -> httpx.Response:
        """
        Send one request, retrying transport failures only.

        Transport failures that survive every attempt, and URLs httpx refuses,
        are raised as ``error`` with ``status=None``.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self.client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise error(f"{method} {url} failed: {e}", status=None, body="") from e
        return response

    def _check_manifest_covers(self, image: Image) -> None:
        uploaded = {layer.digest for layer in image.layers} | {image.config.digest}
        referenced = {d.digest for d in image.manifest.layers} | {image.manifest.config.digest}
        missing = referenced - uploaded
        if missing:
            raise ValueError(f"Manifest of {image.name} references blobs the image does not carry: "
                             f"{', '.join(sorted(missing))}")

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _check(response: httpx.Response, error: Type[NetworkError], message: str) -> None:
    if not response.is_success:
        raise error(f"{message}: HTTP {response.status_code}",
                    status=response.status_code, body=response.text)


def _read_stored(blob: Blob) -> bytes:
    """Bytes exactly as stored locally; layers go out gzip-compressed."""
    try:
        return blob.path.read_bytes()
    except FileNotFoundError as e:
        raise BlobNotFound(f"Blob not found: {blob.digest}") from e
    except OSError as e:
        raise StoreIOError(f"Failed to read blob {blob.digest}: {e}") from e


def _write_output(target: Path, data: bytes) -> Path:
    try:
        write_bytes_atomically(target, data)
    except OSError as e:
        raise StoreIOError(f"Failed to write {target}: {e}") from e
    logger.debug(f"Wrote {target} ({len(data)} bytes)")
    return target
