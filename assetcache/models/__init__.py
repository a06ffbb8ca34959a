"""Asset cache data models — all Pydantic v2, all frozen (immutable)."""

from assetcache.models.assets import Asset, AssetMetadata, asset_metadata_adapter
from assetcache.models.buildpacks import (
    BuildpackDescriptor,
    BuildpackInfo,
    InspectBuildpackOptions,
    PullPolicy,
)
from assetcache.models.image import (
    AssetCacheResult,
    CreateAssetCacheOptions,
    ImageReference,
    PackedLayer,
)

__all__ = [
    # assets
    "Asset",
    "AssetMetadata",
    "asset_metadata_adapter",
    # buildpacks
    "BuildpackDescriptor",
    "BuildpackInfo",
    "InspectBuildpackOptions",
    "PullPolicy",
    # image
    "AssetCacheResult",
    "CreateAssetCacheOptions",
    "ImageReference",
    "PackedLayer",
]
