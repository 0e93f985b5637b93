"""
Tests for the build engine.
"""
from __future__ import annotations

import json

import pytest

from hyperbuild.dockerfile import parse_dockerfile
from hyperbuild.manifest import parse_config, serialize_manifest
from hyperbuild.digest import compute_digest
from hyperbuild.storage.base import BlobKind

from .conftest import SIMPLE_DOCKERFILE


class TestBuildEngine:

    def test_one_layer_per_step(self, built_image):
        assert len(built_image.layers) == 5
        assert all(layer.kind is BlobKind.LAYER for layer in built_image.layers)
        assert [d.digest for d in built_image.manifest.layers] == [l.digest for l in built_image.layers]

    def test_blobs_and_record_persisted(self, built_image, blob_store, image_store):
        for layer in built_image.layers:
            assert blob_store.exists(layer.digest)
        assert blob_store.exists(built_image.config.digest)
        assert blob_store.exists(compute_digest(serialize_manifest(built_image.manifest)))
        assert image_store.list_images() == [built_image.id]

    def test_config_reflects_steps(self, built_image, blob_store):
        config = parse_config(blob_store.get(built_image.config.digest))
        assert config.created == "2024-01-01T00:00:00Z"
        assert config.config.cmd == ["python", "main.py"]
        assert config.config.env == ["APP_HOME=/app"]
        assert config.config.working_dir == "/app"
        assert config.rootfs.diff_ids == [l.digest for l in built_image.layers]

    def test_layers_are_deterministic(self, engine):
        first = engine.build(parse_dockerfile(SIMPLE_DOCKERFILE), "a")
        second = engine.build(parse_dockerfile(SIMPLE_DOCKERFILE), "b")
        assert [l.digest for l in first.layers] == [l.digest for l in second.layers]
        assert first.id != second.id

    def test_same_step_in_different_position_gets_distinct_layer(self, engine):
        image = engine.build(parse_dockerfile("FROM alpine\nRUN true\nRUN true\n"), "dup")
        assert image.layers[0].digest != image.layers[1].digest

    def test_layer_payload_describes_step(self, built_image, blob_store):
        payload = json.loads(blob_store.get(built_image.layers[0].digest))
        assert payload["base"] == "alpine:3.18"
        assert payload["parent"] is None
        assert payload["step"] == {"kind": "run", "command": "apk add --no-cache curl"}

        second = json.loads(blob_store.get(built_image.layers[1].digest))
        assert second["parent"] == built_image.layers[0].digest

    def test_multi_stage_uses_final_stage(self, engine):
        image = engine.build(parse_dockerfile(
            "FROM golang AS build\nRUN go build\nRUN go vet\n"
            "FROM alpine\nCOPY --from=build /out /app\n"
        ), "multi")
        assert len(image.layers) == 1
        # builder stage layers are still stored
        assert len(list(engine.blob_store.list())) == 3 + 2

    def test_from_only_builds_empty_image(self, engine):
        image = engine.build(parse_dockerfile("FROM scratch\n"), "empty")
        assert image.layers == []
        assert image.total_size == 0

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, engine, name):
        with pytest.raises(ValueError, match="name"):
            engine.build(parse_dockerfile("FROM scratch\n"), name)

    def test_no_stages_rejected(self, engine):
        with pytest.raises(ValueError, match="no stages"):
            engine.build([], "nothing")
