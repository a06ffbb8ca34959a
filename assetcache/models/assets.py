"""Asset models — identity and provenance of cached binaries."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Asset(BaseModel):
    """A named, versioned, content-addressed binary artifact.

    ``sha256`` is the hash of the *source* blob and keys the asset within a
    build.  ``layer_diff_id`` is the digest of the *packaged layer*; it is
    empty until the layer packer computes it.

    Field aliases are the label JSON keys.  Lowercase field names are also
    accepted on input, which is what buildpack.toml ``[[assets]]`` uses.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="ID")
    name: str = Field(default="", alias="Name")
    version: str = Field(default="", alias="Version")
    sha256: str = Field(alias="Sha256")
    stacks: list[str] = Field(default_factory=list, alias="Stacks")
    uri: str = Field(default="", alias="URI")
    layer_diff_id: str = Field(default="", alias="LayerDiffID")

    def with_layer_diff_id(self, diff_id: str) -> Asset:
        """Return a copy of this asset carrying the packaged layer's diff ID."""
        return self.model_copy(update={"layer_diff_id": diff_id})

    def to_label_dict(self) -> dict:
        """Serialize with the label's JSON keys."""
        return self.model_dump(mode="json", by_alias=True)


# Content hash -> finalized asset.  This is the shape stored in the image label.
AssetMetadata = dict[str, Asset]

asset_metadata_adapter: TypeAdapter[dict[str, Asset]] = TypeAdapter(dict[str, Asset])
