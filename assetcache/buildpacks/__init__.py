"""Buildpack inspection — resolves a locator into the assets it declares."""

from assetcache.buildpacks.inspector import (
    BuildpackInspector,
    DirectoryInspector,
    collect_assets,
    inspection_plan,
    read_buildpack_toml,
    try_inspect,
)

__all__ = [
    "BuildpackInspector",
    "DirectoryInspector",
    "collect_assets",
    "inspection_plan",
    "read_buildpack_toml",
    "try_inspect",
]
