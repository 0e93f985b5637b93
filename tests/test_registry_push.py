"""
Tests for pushing images through the registry client.

Pushes go to an in-memory fake registry behind httpx.MockTransport, which
records every request so ordering can be asserted.
"""
from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from hyperbuild.digest import compute_digest
from hyperbuild.errors import ManifestUploadFailed, NetworkError, UploadFailed
from hyperbuild.manifest import serialize_manifest
from hyperbuild.registry_client import RegistryClient


class TestPush:

    def test_uploads_layers_then_config_then_manifest(self, client, fake_registry, built_image):
        digest = client.push("myapp", "v1", built_image)

        posts = fake_registry.calls_matching("POST", "/blobs/uploads/")
        puts = fake_registry.calls_matching("PUT", "/blobs/uploads/")
        manifest_puts = fake_registry.calls_matching("PUT", "/manifests/v1")
        assert len(posts) == len(puts) == len(built_image.layers) + 1
        assert manifest_puts == [len(fake_registry.calls) - 1]
        assert max(puts) < manifest_puts[0]

        assert digest == compute_digest(serialize_manifest(built_image.manifest))

    def test_blob_order_and_bytes(self, fake_registry, built_image, blob_store):
        uploaded = []
        original = fake_registry.handler

        def spy(request):
            if request.method == "PUT" and "/blobs/uploads/" in request.url.path:
                uploaded.append(request.url.params["digest"])
            return original(request)

        with RegistryClient("http://localhost:5000", transport=httpx.MockTransport(spy)) as client:
            client.push("myapp", "v1", built_image)

        assert uploaded == [l.digest for l in built_image.layers] + [built_image.config.digest]
        for layer in built_image.layers:
            # layers go out exactly as stored (gzip-compressed)
            assert fake_registry.blobs[("myapp", layer.digest)] == blob_store.read_raw(layer.digest)
        assert fake_registry.blobs[("myapp", built_image.config.digest)] == blob_store.get(built_image.config.digest)

    def test_manifest_document_and_content_type(self, built_image):
        seen = {}

        def handler(request):
            if request.method == "POST":
                return httpx.Response(202, headers={"Location": "/v2/app/blobs/uploads/1"})
            if "/manifests/" in request.url.path:
                seen["content_type"] = request.headers["Content-Type"]
                seen["body"] = request.content
            return httpx.Response(201)

        with RegistryClient("http://localhost:5000", transport=httpx.MockTransport(handler)) as client:
            client.push("app", "latest", built_image)

        assert seen["content_type"] == "application/vnd.oci.image.manifest.v1+json"
        assert seen["body"] == serialize_manifest(built_image.manifest)

    def test_absolute_location(self, client, fake_registry, built_image):
        fake_registry.absolute_location = True
        client.push("myapp", "v1", built_image)
        assert ("myapp", "v1") in fake_registry.manifests

    def test_nested_repository(self, client, fake_registry, built_image):
        client.push("team/tools/myapp", "v1", built_image)
        assert ("team/tools/myapp", "v1") in fake_registry.manifests


class TestPushFailures:

    def test_rejected_blob_stops_before_manifest(self, client, fake_registry, built_image):
        fake_registry.reject_blob_puts = 500

        with pytest.raises(UploadFailed) as exc_info:
            client.push("myapp", "v1", built_image)

        assert exc_info.value.status == 500
        assert "blob upload rejected" in exc_info.value.body
        assert fake_registry.calls_matching("PUT", "/manifests/") == []
        # aborted at the first layer
        assert len(fake_registry.calls) == 2

    def test_missing_location(self, client, fake_registry, built_image):
        fake_registry.omit_location = True
        with pytest.raises(UploadFailed, match="Location"):
            client.push("myapp", "v1", built_image)
        assert fake_registry.calls_matching("PUT", "") == []

    def test_rejected_initiation(self, built_image):
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="denied"))
        with RegistryClient("http://localhost:5000", transport=transport) as client:
            with pytest.raises(UploadFailed) as exc_info:
                client.push("myapp", "v1", built_image)
        assert exc_info.value.status == 403
        assert exc_info.value.body == "denied"

    def test_rejected_manifest(self, client, fake_registry, built_image):
        fake_registry.reject_manifest_puts = 400
        with pytest.raises(ManifestUploadFailed) as exc_info:
            client.push("myapp", "v1", built_image)
        assert exc_info.value.status == 400
        # blobs already uploaded are not rolled back
        assert ("myapp", built_image.config.digest) in fake_registry.blobs

    def test_unparseable_location(self, built_image):
        requests = []

        def handler(request):
            requests.append(request.method)
            return httpx.Response(202, headers={"Location": "http://[::1/upload"})

        transport = httpx.MockTransport(handler)
        with RegistryClient("http://localhost:5000", transport=transport) as client:
            with pytest.raises(UploadFailed, match="unusable Location") as exc_info:
                client.push("myapp", "v1", built_image)
        assert exc_info.value.status == 202
        assert requests == ["POST"]

    def test_url_refused_by_httpx(self, client, fake_registry):
        with patch.object(client.client, "request", side_effect=httpx.InvalidURL("Invalid URL")):
            with pytest.raises(UploadFailed) as exc_info:
                client.upload_blob("myapp", compute_digest(b"x"), b"x")
        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, httpx.InvalidURL)

    def test_upload_failures_are_network_errors(self):
        assert issubclass(UploadFailed, NetworkError)
        assert issubclass(ManifestUploadFailed, NetworkError)


class TestRetry:

    def test_no_retry_by_default(self, client, fake_registry, built_image):
        fake_registry.connect_failures = 1
        with pytest.raises(UploadFailed) as exc_info:
            client.push("myapp", "v1", built_image)
        assert exc_info.value.status is None
        assert len(fake_registry.calls) == 1

    def test_transport_failures_retried(self, fake_registry, built_image):
        fake_registry.connect_failures = 2
        with RegistryClient("http://localhost:5000", transport=fake_registry.transport,
                            retries=2, backoff=0.0) as client:
            client.push("myapp", "v1", built_image)
        assert ("myapp", "v1") in fake_registry.manifests

    def test_retries_exhausted(self, fake_registry, built_image):
        fake_registry.connect_failures = 5
        with RegistryClient("http://localhost:5000", transport=fake_registry.transport,
                            retries=2, backoff=0.0) as client:
            with pytest.raises(UploadFailed):
                client.push("myapp", "v1", built_image)
        assert len(fake_registry.calls) == 3

    def test_http_errors_never_retried(self, fake_registry, built_image):
        fake_registry.reject_blob_puts = 503
        with RegistryClient("http://localhost:5000", transport=fake_registry.transport,
                            retries=3, backoff=0.0) as client:
            with pytest.raises(UploadFailed):
                client.push("myapp", "v1", built_image)
        assert len(fake_registry.calls) == 2

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            RegistryClient("http://localhost:5000", retries=-1)
