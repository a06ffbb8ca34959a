"""assetcache: content-addressed asset cache images.

Packages the assets a buildpack declares into a container image with one
layer per unique asset, and records in the ``io.buildpacks.asset.layers``
label which layer holds which asset, so a consumer can locate and verify a
single asset without unpacking the image.
"""

__version__ = "0.1.0"

from assetcache.core.builder import CacheBuilder, create_asset_cache
from assetcache.models.assets import Asset, AssetMetadata

__all__ = ["Asset", "AssetMetadata", "CacheBuilder", "create_asset_cache", "__version__"]
