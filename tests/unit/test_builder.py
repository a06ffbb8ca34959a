"""Unit tests for CacheBuilder — the end-to-end build contract against a fake store."""

from __future__ import annotations

import hashlib
import io
import json
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from assetcache.config import CacheSettings
from assetcache.core.builder import CacheBuilder, create_asset_cache
from assetcache.core.metadata import MetadataAssembler, parse_label
from assetcache.errors import FetchError, PackError, StoreError, ValidationError
from assetcache.models.assets import Asset
from assetcache.models.image import CreateAssetCacheOptions

from tests.fakes import FakeImageStore, StaticFetcher

LABEL = MetadataAssembler.ASSET_LAYERS_LABEL


def _build(store, fetcher, settings, image_name="test-cache-image", assets=()):
    return create_asset_cache(
        image_name, list(assets), store=store, fetcher=fetcher, settings=settings
    )


# ---------------------------------------------------------------------------
# Test: successful builds
# ---------------------------------------------------------------------------


class TestSuccessfulBuild:
    """A build with two assets must produce two layers and a complete label."""

    def test_creates_local_image_with_given_name(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)
        assert image_store.new_image_calls == [("test-cache-image", True)]

    def test_image_saved_with_two_layers(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)

        image = image_store.image
        assert image.saved is True
        assert image.number_of_added_layers == 2

    def test_label_maps_each_hash_to_its_asset(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)

        metadata = parse_label(image_store.image.labels[LABEL])
        assert set(metadata) == {"first-sha256", "second-sha256"}
        first = metadata["first-sha256"]
        assert first.id == "first-asset"
        assert first.version == "1.2.3"
        assert first.stacks == ["io.buildpacks.stacks.bionic"]
        assert first.uri == "https://first-asset-uri"
        assert metadata["second-sha256"].version == "4.5.6"

    def test_layer_diff_ids_match_layer_bytes(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)

        image = image_store.image
        metadata = parse_label(image.labels[LABEL])
        for sha, layer_index in (("first-sha256", 0), ("second-sha256", 1)):
            expected = "sha256:" + hashlib.sha256(image.layers[layer_index]).hexdigest()
            assert metadata[sha].layer_diff_id == expected

    def test_layers_hold_assets_at_fixed_paths(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)

        image = image_store.image
        assert image.find_layer_with_path("/cnb/assets/first-sha256") == 0
        assert image.find_layer_with_path("/cnb/assets/second-sha256") == 1

    def test_result_carries_diff_ids_and_label(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        result = _build(image_store, fetcher, settings, assets=assets)

        assert result.image_name == "test-cache-image"
        assert [a.id for a in result.assets] == ["first-asset", "second-asset"]
        assert all(a.layer_diff_id.startswith("sha256:") for a in result.assets)
        assert result.label == image_store.image.labels[LABEL]

    def test_empty_asset_list_saves_empty_label(self, image_store, settings):
        _build(image_store, StaticFetcher({}), settings, assets=[])

        image = image_store.image
        assert image.saved is True
        assert image.number_of_added_layers == 0
        assert json.loads(image.labels[LABEL]) == {}

    def test_logs_resolved_image_name(self, image_store, settings, two_assets, caplog):
        assets, fetcher = two_assets
        with caplog.at_level(logging.INFO, logger="assetcache.core.builder"):
            _build(image_store, fetcher, settings, image_name="repo/cache", assets=assets)
        assert "Creating asset cache repo/cache:latest with 2 assets" in caplog.text

    def test_builder_accepts_options_model(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        builder = CacheBuilder(image_store, fetcher, settings=settings)
        result = builder.build(CreateAssetCacheOptions(image_name="repo/cache:v1", assets=assets))
        assert result.image_name == "repo/cache:v1"
        assert image_store.new_image_calls == [("repo/cache:v1", True)]


# ---------------------------------------------------------------------------
# Test: deduplication and ordering
# ---------------------------------------------------------------------------


class TestDeduplicationAndOrder:
    """Duplicates collapse; input order never changes the label."""

    def test_duplicate_hash_contributes_one_entry(
        self, image_store, settings, two_assets, make_asset: Callable[..., Asset]
    ):
        assets, fetcher = two_assets
        duplicate = make_asset("first-asset-copy", "first-sha256", uri="https://first-asset-uri")
        _build(image_store, fetcher, settings, assets=[*assets, duplicate])

        image = image_store.image
        metadata = parse_label(image.labels[LABEL])
        assert len(metadata) == 2
        assert metadata["first-sha256"].id == "first-asset"
        assert image.number_of_added_layers == 2
        assert fetcher.calls.count("https://first-asset-uri") == 1

    def test_entry_count_equals_distinct_hashes(
        self, settings, make_asset: Callable[..., Asset], write_blob
    ):
        blob = write_blob("shared", b"payload")
        assets = [
            make_asset(f"asset-{i}", f"sha-{i % 3}", uri="file-uri") for i in range(7)
        ]
        store = FakeImageStore()
        _build(store, StaticFetcher({"file-uri": blob}), settings, assets=assets)
        assert len(parse_label(store.image.labels[LABEL])) == 3

    def test_reordered_input_gives_identical_label(self, settings, two_assets):
        assets, fetcher = two_assets
        forward, backward = FakeImageStore(), FakeImageStore()
        _build(forward, fetcher, settings, assets=assets)
        _build(backward, fetcher, settings, assets=list(reversed(assets)))

        assert forward.image.labels[LABEL] == backward.image.labels[LABEL]

    def test_layers_attached_in_id_order(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=list(reversed(assets)))
        image = image_store.image
        assert image.find_layer_with_path("/cnb/assets/first-sha256") == 0


# ---------------------------------------------------------------------------
# Test: failures
# ---------------------------------------------------------------------------


class TestBuildFailures:
    """Every failure aborts the build and leaves no saved image."""

    def test_invalid_image_name_fails_before_store(self, image_store, settings, two_assets):
        assets, fetcher = two_assets
        with pytest.raises(ValidationError, match="invalid asset cache image name: "):
            _build(image_store, fetcher, settings, image_name="::::", assets=assets)
        assert image_store.new_image_calls == []
        assert fetcher.calls == []

    def test_image_creation_failure(self, settings, two_assets):
        assets, fetcher = two_assets
        store = FakeImageStore(fail_create=True)
        with pytest.raises(StoreError, match="unable to create asset cache image:"):
            _build(store, fetcher, settings, image_name="some-example-image", assets=assets)
        assert fetcher.calls == []

    def test_fetch_failure_aborts_without_saving(
        self, image_store, settings, two_assets, make_asset: Callable[..., Asset]
    ):
        assets, fetcher = two_assets
        missing = make_asset("missing-asset", "missing-sha256")
        with pytest.raises(FetchError) as excinfo:
            _build(image_store, fetcher, settings, assets=[*assets, missing])

        assert excinfo.value.asset_id == "missing-asset"
        assert excinfo.value.sha256 == "missing-sha256"
        image = image_store.image
        assert image.saved is False
        assert image.number_of_added_layers == 0

    def test_unexpected_fetcher_exception_becomes_fetch_error(
        self, image_store, settings, make_asset: Callable[..., Asset]
    ):
        class _BrokenFetcher:
            def fetch(self, uri, workdir):
                raise ConnectionResetError("peer went away")

        with pytest.raises(FetchError, match="peer went away"):
            _build(image_store, _BrokenFetcher(), settings, assets=[make_asset()])
        assert image_store.image.saved is False

    def test_unreadable_blob_becomes_pack_error(
        self, image_store, settings, make_asset: Callable[..., Asset]
    ):
        class _ClosedHandleBlob:
            def open(self):
                handle = io.BytesIO(b"payload")
                handle.close()
                return handle

        class _ClosedHandleFetcher:
            def fetch(self, uri, workdir):
                return _ClosedHandleBlob()

        with pytest.raises(PackError) as excinfo:
            _build(image_store, _ClosedHandleFetcher(), settings, assets=[make_asset()])
        assert excinfo.value.asset_id == "first-asset"
        assert image_store.image.saved is False

    @pytest.mark.parametrize("call", ["add_layer", "set_label", "save"])
    def test_store_failures_become_store_errors(self, settings, two_assets, call):
        assets, fetcher = two_assets
        store = FakeImageStore(fail_on=call)
        with pytest.raises(StoreError, match=f"{call} exploded"):
            _build(store, fetcher, settings, assets=assets)
        assert store.image.saved is False

    def test_add_layer_failure_names_the_asset(self, settings, two_assets):
        assets, fetcher = two_assets
        store = FakeImageStore(fail_on="add_layer")
        with pytest.raises(StoreError) as excinfo:
            _build(store, fetcher, settings, assets=assets)
        assert excinfo.value.asset_id == "first-asset"
        assert excinfo.value.step == "add-layer"


# ---------------------------------------------------------------------------
# Test: working directory
# ---------------------------------------------------------------------------


class TestWorkingDirectory:
    """The scratch directory is removed on every exit path."""

    def test_removed_after_success(self, image_store, settings, two_assets, scratch_root: Path):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)
        assert list(scratch_root.iterdir()) == []

    def test_layer_files_lived_in_scratch(self, image_store, settings, two_assets, scratch_root: Path):
        assets, fetcher = two_assets
        _build(image_store, fetcher, settings, assets=assets)
        for path in image_store.image.layer_paths:
            assert scratch_root in path.parents
            assert not path.exists()

    def test_removed_after_failure(self, settings, two_assets, scratch_root: Path):
        assets, fetcher = two_assets
        store = FakeImageStore(fail_on="save")
        with pytest.raises(StoreError):
            _build(store, fetcher, settings, assets=assets)
        assert list(scratch_root.iterdir()) == []

    def test_missing_scratch_root_is_reported(self, image_store, tmp_path: Path, two_assets):
        assets, fetcher = two_assets
        settings = CacheSettings(scratch_root=tmp_path / "does-not-exist")
        with pytest.raises(PackError, match="working directory"):
            _build(image_store, fetcher, settings, assets=assets)
        assert image_store.image.saved is False
