"""
Tests for image reference resolution.
"""
from __future__ import annotations

import pytest

from hyperbuild.errors import InvalidReference
from hyperbuild.reference import ImageReference, resolve


class TestResolve:

    def test_bare_name(self):
        ref = resolve("myimage")
        assert ref.endpoint == "https://registry-1.docker.io"
        assert ref.repository == "library/myimage"
        assert ref.tag == "latest"

    def test_local_registry_with_port_and_tag(self):
        ref = resolve("localhost:5000/myimage:v2")
        assert ref.endpoint == "http://localhost:5000"
        assert ref.repository == "myimage"
        assert ref.tag == "v2"

    def test_docker_hub_host(self):
        ref = resolve("docker.io/library/alpine")
        assert ref.endpoint == "https://docker.io"
        assert ref.repository == "library/alpine"
        assert ref.tag == "latest"

    def test_bare_name_with_tag(self):
        ref = resolve("alpine:3.18")
        assert ref.repository == "library/alpine"
        assert ref.tag == "3.18"

    def test_loopback_uses_plain_http(self):
        ref = resolve("127.0.0.1:5000/team/app:1.0")
        assert ref.endpoint == "http://127.0.0.1:5000"
        assert ref.repository == "team/app"
        assert ref.tag == "1.0"

    def test_remote_host_with_port_uses_https(self):
        ref = resolve("registry.example.com:443/app")
        assert ref.endpoint == "https://registry.example.com:443"
        assert ref.repository == "app"

    def test_port_is_never_a_tag(self):
        ref = resolve("localhost:5000/app")
        assert ref.repository == "app"
        assert ref.tag == "latest"

    def test_namespace_without_host_goes_to_default_registry(self):
        ref = resolve("myorg/app:1")
        assert ref.endpoint == "https://registry-1.docker.io"
        assert ref.repository == "library/myorg/app"
        assert ref.tag == "1"

    def test_explicit_scheme_kept(self):
        ref = resolve("http://myregistry/app:dev")
        assert ref.endpoint == "http://myregistry"
        assert ref.repository == "app"
        assert ref.tag == "dev"

    def test_trailing_colon_defaults_tag(self):
        assert resolve("myimage:").tag == "latest"

    def test_custom_default_endpoint(self):
        ref = resolve("app", default_endpoint="http://mirror.local:5000/")
        assert ref.endpoint == "http://mirror.local:5000"
        assert ref.repository == "library/app"

    def test_surrounding_whitespace_ignored(self):
        assert resolve("  myimage  ").repository == "library/myimage"

    def test_pure_function(self):
        assert resolve("localhost:5000/a:b") == resolve("localhost:5000/a:b")

    def test_str(self):
        assert str(resolve("localhost:5000/myimage:v2")) == "localhost:5000/myimage:v2"


class TestInvalid:

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty(self, value):
        with pytest.raises(InvalidReference, match="empty"):
            resolve(value)

    @pytest.mark.parametrize("value", [
        "localhost:5000/",
        "localhost:5000/:v1",
        "http://localhost:5000",
        "registry.example.com/team/",
    ])
    def test_no_repository(self, value):
        with pytest.raises(InvalidReference):
            resolve(value)

    def test_invalid_reference_is_value_error(self):
        with pytest.raises(ValueError):
            resolve("")


def test_reference_is_frozen():
    ref = ImageReference(endpoint="http://x", repository="r", tag="t")
    with pytest.raises(Exception):
        ref.tag = "other"
