"""Image-side models — references, packed layers, build options."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from assetcache.models.assets import Asset


class ImageReference(BaseModel):
    """A validated tag reference.

    ``str()`` returns the name exactly as the caller supplied it.
    """

    model_config = ConfigDict(frozen=True)

    original: str
    registry: str = ""
    repository: str
    tag: str = "latest"

    @property
    def full_name(self) -> str:
        """Registry, repository and tag joined, with the default tag made explicit."""
        base = f"{self.registry}/{self.repository}" if self.registry else self.repository
        return f"{base}:{self.tag}"

    def __str__(self) -> str:
        return self.original


class PackedLayer(BaseModel):
    """A layer file written by the packer and the diff ID of its tar stream."""

    model_config = ConfigDict(frozen=True)

    path: Path
    diff_id: str  # "sha256:<hex>"
    size_bytes: int = 0


class CreateAssetCacheOptions(BaseModel):
    """Input to a single cache build."""

    model_config = ConfigDict(frozen=True)

    image_name: str
    assets: list[Asset] = []


class AssetCacheResult(BaseModel):
    """What a successful build produced."""

    model_config = ConfigDict(frozen=True)

    image_name: str
    assets: list[Asset]
    label: str
