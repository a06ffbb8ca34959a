"""Asset cache image — packs every asset into a layer, labels, and saves.

``AssetCacheImage`` is given an image handle, the fetched blobs keyed by
content hash, and the deduplicated asset set.  ``save()`` walks the set in
order; any failure stops the walk and propagates, and the handle is never
saved in that case.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from assetcache.core.fetcher import AssetBlob
from assetcache.core.metadata import MetadataAssembler
from assetcache.core.packer import LayerPacker
from assetcache.errors import AssetCacheError, ConsistencyError, StoreError
from assetcache.models.assets import Asset
from assetcache.store import ImageHandle

logger = logging.getLogger(__name__)


class AssetCacheImage:
    """Writes a set of assets into one image.

    Parameters
    ----------
    image:
        Fresh image handle, exclusively owned for the duration of ``save()``.
    blobs:
        Fetched blobs, keyed by asset ``sha256``.
    assets:
        The deduplicated, ordered asset set.
    workdir:
        Scratch directory for layer files.
    """

    def __init__(
        self,
        image: ImageHandle,
        blobs: Mapping[str, AssetBlob],
        assets: Sequence[Asset],
        workdir: Path,
        *,
        packer: LayerPacker | None = None,
    ) -> None:
        self._image = image
        self._blobs = blobs
        self._assets = tuple(assets)
        self._packer = packer or LayerPacker(workdir)
        self._assembler = MetadataAssembler()

    @property
    def assembler(self) -> MetadataAssembler:
        return self._assembler

    def save(self) -> list[Asset]:
        """Pack, attach and label every asset, then save the image.

        Returns the assets with ``layer_diff_id`` populated, in set order.
        """
        packed: list[Asset] = []
        for asset in self._assets:
            packed.append(self._add_asset(asset))

        label = self._assembler.to_label()
        self._call_store(
            "set-label",
            lambda: self._image.set_label(MetadataAssembler.ASSET_LAYERS_LABEL, label),
        )
        self._call_store("save", self._image.save)
        return packed

    def _add_asset(self, asset: Asset) -> Asset:
        blob = self._blobs.get(asset.sha256)
        if blob is None:
            raise ConsistencyError(
                "associated asset blob does not exist",
                asset_id=asset.id,
                sha256=asset.sha256,
            )

        try:
            layer = self._packer.pack(blob, asset.sha256)
        except AssetCacheError as exc:
            exc.asset_id = exc.asset_id or asset.id
            raise

        self._call_store(
            "add-layer", lambda: self._image.add_layer(layer.path), asset=asset
        )

        finalized = asset.with_layer_diff_id(layer.diff_id)
        self._assembler.add(finalized)
        logger.debug("Added asset %s (%s) as layer %s", asset.id, asset.sha256, layer.diff_id)
        return finalized

    def _call_store(self, step: str, call, *, asset: Asset | None = None) -> None:
        """Run one image-store call, reporting foreign failures as ``StoreError``."""
        asset_id = asset.id if asset else None
        sha256 = asset.sha256 if asset else None
        try:
            call()
        except StoreError as exc:
            exc.asset_id = exc.asset_id or asset_id
            exc.sha256 = exc.sha256 or sha256
            exc.step = step
            raise
        except Exception as exc:
            raise StoreError(
                f"image store failed to {step.replace('-', ' ')} for "
                f"{self._image.name}: {exc}",
                asset_id=asset_id,
                sha256=sha256,
                step=step,
            ) from exc
