"""Cache builder — the entry point that turns an asset list into a saved image.

Build lifecycle:
1. Validate the image name (no I/O before this succeeds)
2. Create a new local image through the image store
3. Deduplicate the asset list
4. Create the working directory
5. Fetch every unique asset
6. Pack, attach, label and save (``AssetCacheImage``)
7. Remove the working directory, whatever happened

The build is all-or-nothing from the caller's point of view: any failure
raises an ``AssetCacheError`` and the image is not saved.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

from assetcache.config import CacheSettings
from assetcache.core.cache_image import AssetCacheImage
from assetcache.core.dedup import deduplicate_assets
from assetcache.core.fetcher import AssetBlob, AssetFetcher, URIFetcher
from assetcache.core.reference import parse_image_reference
from assetcache.errors import AssetCacheError, FetchError, PackError, StoreError, ValidationError
from assetcache.models.assets import Asset
from assetcache.models.image import AssetCacheResult, CreateAssetCacheOptions, ImageReference
from assetcache.store import ImageHandle, ImageStore

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "create-asset-scratch"


class CacheBuilder:
    """Builds asset cache images.

    Parameters
    ----------
    store:
        Image store that creates, extends and saves the target image.
    fetcher:
        Resolves asset URIs. Defaults to ``URIFetcher``.
    settings:
        Runtime settings (scratch location, fetch timeout).
    """

    def __init__(
        self,
        store: ImageStore,
        fetcher: AssetFetcher | None = None,
        *,
        settings: CacheSettings | None = None,
    ) -> None:
        self._settings = settings or CacheSettings()
        self._store = store
        self._fetcher = fetcher or URIFetcher(timeout=self._settings.fetch_timeout_seconds)

    def build(self, options: CreateAssetCacheOptions) -> AssetCacheResult:
        """Run one cache build. Raises ``AssetCacheError`` on any failure."""
        reference = self.validate_image_name(options.image_name)
        image = self._new_image(reference)

        assets = deduplicate_assets(options.assets)
        logger.info(
            "Creating asset cache %s with %d assets (%d unique)",
            reference.full_name, len(options.assets), len(assets),
        )

        with self._working_directory() as tmp:
            workdir = Path(tmp)
            blobs = self._fetch_all(assets, workdir)
            cache_image = AssetCacheImage(image, blobs, assets, workdir)
            packed = cache_image.save()
            label = cache_image.assembler.to_label()

        logger.info("Asset cache %s saved with %d layers", reference, len(packed))
        return AssetCacheResult(image_name=str(reference), assets=packed, label=label)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def validate_image_name(image_name: str) -> ImageReference:
        try:
            return parse_image_reference(image_name)
        except ValidationError as exc:
            raise ValidationError(f"invalid asset cache image name: {exc}") from exc

    def _new_image(self, reference: ImageReference) -> ImageHandle:
        # TODO: pass local=False once publishing to a registry is supported
        try:
            return self._store.new_image(str(reference), True)
        except Exception as exc:
            raise StoreError(
                f"unable to create asset cache image: {exc}", step="create-image"
            ) from exc

    def _working_directory(self) -> tempfile.TemporaryDirectory:
        scratch_root = self._settings.scratch_root
        try:
            return tempfile.TemporaryDirectory(
                prefix=SCRATCH_PREFIX, dir=str(scratch_root) if scratch_root else None
            )
        except OSError as exc:
            raise PackError(
                f"unable to create working directory: {exc}", step="workdir"
            ) from exc

    def _fetch_all(self, assets: Sequence[Asset], workdir: Path) -> dict[str, AssetBlob]:
        blobs: dict[str, AssetBlob] = {}
        for asset in assets:
            logger.debug("Fetching %s from %s", asset.id, asset.uri)
            try:
                blobs[asset.sha256] = self._fetcher.fetch(asset.uri, workdir)
            except AssetCacheError as exc:
                exc.asset_id = exc.asset_id or asset.id
                exc.sha256 = exc.sha256 or asset.sha256
                raise
            except Exception as exc:
                raise FetchError(
                    f"unable to fetch {asset.uri}: {exc}",
                    asset_id=asset.id,
                    sha256=asset.sha256,
                ) from exc
        return blobs


def create_asset_cache(
    image_name: str,
    assets: Iterable[Asset],
    *,
    store: ImageStore,
    fetcher: AssetFetcher | None = None,
    settings: CacheSettings | None = None,
) -> AssetCacheResult:
    """Build an asset cache image named ``image_name`` from ``assets``."""
    builder = CacheBuilder(store, fetcher, settings=settings)
    return builder.build(
        CreateAssetCacheOptions(image_name=image_name, assets=list(assets))
    )
