"""Asset deduplication — one asset per content hash, ordered by ID."""

from __future__ import annotations

from collections.abc import Iterable

from assetcache.models.assets import Asset


def deduplicate_assets(assets: Iterable[Asset]) -> tuple[Asset, ...]:
    """Collapse an asset list into a uniquely keyed, deterministically ordered set.

    The first occurrence of each ``sha256`` wins.  The result is sorted by
    ``id`` (code-point order), with the hash breaking ties between equal IDs,
    so reordering the input does not change the output unless two records
    share a hash.
    """
    by_hash: dict[str, Asset] = {}
    for asset in assets:
        by_hash.setdefault(asset.sha256, asset)
    return tuple(sorted(by_hash.values(), key=lambda asset: (asset.id, asset.sha256)))
