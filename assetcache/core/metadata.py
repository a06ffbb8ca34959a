"""Label assembly — the content-hash → asset mapping stored on the image.

Label value (canonical JSON, sorted keys, compact)::

    {"<sha256>": {"ID": ..., "LayerDiffID": "sha256:<hex>", "Name": ...,
                  "Sha256": ..., "Stacks": [...], "URI": ..., "Version": ...}}
"""

from __future__ import annotations

from assetcache.core.hasher import canonical_json_bytes
from assetcache.errors import ConsistencyError
from assetcache.models.assets import Asset, AssetMetadata, asset_metadata_adapter


class MetadataAssembler:
    """Collects packed assets and renders them as the image label."""

    ASSET_LAYERS_LABEL = "io.buildpacks.asset.layers"

    def __init__(self) -> None:
        self._entries: AssetMetadata = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, asset: Asset) -> None:
        """Record a packed asset.

        Raises
        ------
        ConsistencyError
            If the asset has no diff ID yet or its hash is already recorded.
        """
        if not asset.layer_diff_id:
            raise ConsistencyError(
                "asset has no layer diff ID", asset_id=asset.id, sha256=asset.sha256
            )
        if asset.sha256 in self._entries:
            raise ConsistencyError(
                "asset recorded twice", asset_id=asset.id, sha256=asset.sha256
            )
        self._entries[asset.sha256] = asset

    def metadata(self) -> AssetMetadata:
        """Return a copy of the collected mapping."""
        return dict(self._entries)

    def to_label(self) -> str:
        """Serialize the mapping as canonical JSON."""
        payload = {sha: asset.to_label_dict() for sha, asset in self._entries.items()}
        return canonical_json_bytes(payload).decode("utf-8")


def parse_label(value: str) -> AssetMetadata:
    """Decode a label value written by ``MetadataAssembler.to_label``."""
    return asset_metadata_adapter.validate_json(value)
