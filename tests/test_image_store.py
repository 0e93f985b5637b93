"""
Tests for the image record store.
"""
from __future__ import annotations

import dataclasses
import json
from unittest.mock import patch

import pytest

from hyperbuild.dockerfile import parse_dockerfile
from hyperbuild.errors import ImageNotFound, StoreIOError
from hyperbuild.manifest import serialize_manifest
from hyperbuild.storage import image_store as image_store_module


class TestImageStore:

    def test_record_layout(self, built_image, image_store, blob_store):
        image_dir = image_store.images_dir / built_image.id
        assert (image_dir / "name.txt").read_text() == "localhost:5000/myapp:v1"
        assert (image_dir / "manifest.json").read_bytes() == serialize_manifest(built_image.manifest)
        assert (image_dir / "config.json").read_bytes() == blob_store.get(built_image.config.digest)

    def test_get_image_round_trip(self, built_image, image_store):
        loaded = image_store.get_image(built_image.id)
        assert loaded.id == built_image.id
        assert loaded.name == built_image.name
        assert loaded.manifest == built_image.manifest
        assert loaded.layers == built_image.layers
        assert loaded.config == built_image.config

    def test_record_holds_no_layer_bytes(self, built_image, image_store):
        image_dir = image_store.images_dir / built_image.id
        assert sorted(p.name for p in image_dir.iterdir()) == ["config.json", "manifest.json", "name.txt"]
        manifest = json.loads((image_dir / "manifest.json").read_text())
        assert len(manifest["layers"]) == 5

    def test_get_by_name(self, built_image, image_store):
        assert image_store.get_image_by_name("localhost:5000/myapp:v1").id == built_image.id
        with pytest.raises(ImageNotFound):
            image_store.get_image_by_name("localhost:5000/other:v1")

    def test_get_missing(self, image_store):
        with pytest.raises(ImageNotFound):
            image_store.get_image("0" * 32)

    def test_list_sorted(self, engine, image_store):
        ids = {engine.build(parse_dockerfile("FROM scratch\n"), f"img{i}").id for i in range(3)}
        assert image_store.list_images() == sorted(ids)

    def test_remove(self, built_image, image_store, blob_store):
        image_store.remove_image(built_image.id)
        assert image_store.list_images() == []
        # blobs stay behind
        assert blob_store.exists(built_image.layers[0].digest)
        with pytest.raises(ImageNotFound):
            image_store.remove_image(built_image.id)

    @pytest.mark.parametrize("image_id", ["", "..", "a/b"])
    def test_unsafe_ids_rejected(self, image_store, image_id):
        with pytest.raises(ValueError, match="Invalid image id"):
            image_store.get_image(image_id)

    def test_collect_garbage_reclaims_nothing(self, built_image, image_store, blob_store):
        image_store.remove_image(built_image.id)
        before = list(blob_store.list())
        assert image_store.collect_garbage() == 0
        assert list(blob_store.list()) == before


class TestAtomicSave:

    def test_interrupted_save_leaves_no_record(self, built_image, image_store):
        image_store.remove_image(built_image.id)
        real_write = image_store_module.write_bytes_atomically
        writes = []

        def fail_second_write(path, data):
            writes.append(path)
            if len(writes) == 2:
                raise OSError("disk full")
            real_write(path, data)

        with patch.object(image_store_module, "write_bytes_atomically", side_effect=fail_second_write):
            with pytest.raises(StoreIOError, match="disk full"):
                image_store.save_image(built_image)

        assert image_store.list_images() == []
        assert list(image_store.images_dir.iterdir()) == []
        with pytest.raises(ImageNotFound):
            image_store.get_image(built_image.id)

    def test_listing_survives_interrupted_save(self, built_image, image_store, engine):
        other = engine.build(parse_dockerfile("FROM scratch\n"), "other")

        with patch.object(image_store_module.os, "replace", side_effect=OSError("rename failed")):
            with pytest.raises(StoreIOError):
                image_store.save_image(dataclasses.replace(other, id="f" * 32, name="half"))

        ids = image_store.list_images()
        assert ids == sorted([built_image.id, other.id])
        assert [image_store.get_image(i).id for i in ids] == ids

    def test_existing_record_not_overwritten(self, built_image, image_store):
        with pytest.raises(StoreIOError):
            image_store.save_image(built_image)
        assert image_store.get_image(built_image.id).name == built_image.name
        assert [p.name for p in image_store.images_dir.iterdir()] == [built_image.id]
