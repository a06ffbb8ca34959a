"""Shared test fixtures for assetcache."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from assetcache.config import CacheSettings
from assetcache.models.assets import Asset

from tests.fakes import FakeImageStore, StaticFetcher


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def image_store() -> FakeImageStore:
    """Provide a fresh recording image store."""
    return FakeImageStore()


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    """Provide an empty directory to hold build working directories."""
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def settings(scratch_root: Path) -> CacheSettings:
    """Provide settings whose working directories land in ``scratch_root``."""
    return CacheSettings(scratch_root=scratch_root)


@pytest.fixture
def write_blob(tmp_path: Path) -> Callable[[str, bytes], Path]:
    """Factory fixture: write bytes to a named file under a blobs directory."""
    blobs = tmp_path / "blobs"
    blobs.mkdir()

    def _factory(name: str, data: bytes) -> Path:
        path = blobs / name
        path.write_bytes(data)
        return path

    return _factory


@pytest.fixture
def make_asset() -> Callable[..., Asset]:
    """Factory fixture: build an Asset with sensible defaults."""

    def _factory(asset_id: str = "first-asset", sha256: str = "first-sha256", **overrides: Any) -> Asset:
        defaults: dict[str, Any] = {
            "id": asset_id,
            "name": asset_id.replace("-", " ").title(),
            "version": "1.2.3",
            "sha256": sha256,
            "stacks": ["io.buildpacks.stacks.bionic"],
            "uri": f"https://{asset_id}-uri",
        }
        defaults.update(overrides)
        return Asset(**defaults)

    return _factory


@pytest.fixture
def two_assets(
    make_asset: Callable[..., Asset], write_blob: Callable[[str, bytes], Path]
) -> tuple[list[Asset], StaticFetcher]:
    """Two distinct assets and a fetcher that serves their blobs."""
    first = make_asset("first-asset", "first-sha256", version="1.2.3")
    second = make_asset("second-asset", "second-sha256", version="4.5.6")
    fetcher = StaticFetcher({
        first.uri: write_blob("first", b"\nfirst-asset-blob-contents.\n"),
        second.uri: write_blob("second", b"\nsecond-asset-blob-contents.\n"),
    })
    return [first, second], fetcher
