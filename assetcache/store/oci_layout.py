"""Local image store backed by an OCI image layout directory.

Layout::

    {root}/oci-layout
    {root}/index.json
    {root}/blobs/sha256/{hex}

Layers are stored uncompressed, so a layer's blob digest is also its diff
ID.  Content-addressed blobs are written as soon as they are known; the
image only becomes visible when ``save()`` adds its manifest to
``index.json`` under the ``org.opencontainers.image.ref.name`` annotation.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Any

from assetcache.core.hasher import (
    HashingWriter,
    canonical_json_bytes,
    file_digest,
    format_digest,
    sha256_hex,
    split_digest,
)
from assetcache.core.metadata import MetadataAssembler, parse_label
from assetcache.core.packer import LayerPacker
from assetcache.errors import ImageNotFoundError, StoreError
from assetcache.models.assets import AssetMetadata

logger = logging.getLogger(__name__)

OCI_LAYOUT_VERSION = "1.0.0"
INDEX_SCHEMA_VERSION = 2
MEDIA_TYPE_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_LAYER = "application/vnd.oci.image.layer.v1.tar"
REF_NAME_ANNOTATION = "org.opencontainers.image.ref.name"

_CREATED = "1980-01-01T00:00:01Z"


def _normalize_member(path: str) -> str:
    return path.strip("/")


class OCILayoutStore:
    """An ``ImageStore`` writing images into an OCI layout on disk.

    Parameters
    ----------
    root:
        Layout directory. Created on first use.
    architecture, os_name:
        Platform recorded in every image config.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        architecture: str = "amd64",
        os_name: str = "linux",
    ) -> None:
        self.root = Path(root)
        self.architecture = architecture
        self.os_name = os_name

    # ------------------------------------------------------------------
    # ImageStore
    # ------------------------------------------------------------------

    def new_image(self, name: str, local: bool = True) -> LayoutImage:
        if not local:
            raise StoreError(f"remote image creation is not supported: {name}")
        try:
            self._ensure_layout()
        except OSError as exc:
            raise StoreError(f"unable to initialize image layout at {self.root}: {exc}") from exc
        return LayoutImage(self, name)

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------

    @property
    def blobs_dir(self) -> Path:
        return self.root / "blobs" / "sha256"

    def blob_path(self, digest: str) -> Path:
        algorithm, hex_digest = split_digest(digest)
        return self.root / "blobs" / algorithm / hex_digest

    def write_blob(self, data: bytes) -> str:
        """Store bytes as a blob and return their digest."""
        digest = format_digest(sha256_hex(data))
        path = self.blob_path(digest)
        if not path.exists():
            self._atomic_write(path, data)
        return digest

    def import_blob(self, source: Path) -> tuple[str, int]:
        """Copy a file into the blob directory, hashing it on the way.

        Returns the blob digest and size.
        """
        self.blobs_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.blobs_dir, prefix=".import-")
        try:
            with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
                writer = HashingWriter(dst)
                shutil.copyfileobj(src, writer)
            digest = writer.digest()
            os.replace(tmp_name, self.blob_path(digest))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return digest, writer.bytes_written

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _ensure_layout(self) -> None:
        self.blobs_dir.mkdir(parents=True, exist_ok=True)
        layout_file = self.root / "oci-layout"
        if not layout_file.exists():
            self._atomic_write(
                layout_file,
                json.dumps({"imageLayoutVersion": OCI_LAYOUT_VERSION}).encode("utf-8"),
            )
        if not (self.root / "index.json").exists():
            self._write_index({
                "schemaVersion": INDEX_SCHEMA_VERSION,
                "mediaType": MEDIA_TYPE_INDEX,
                "manifests": [],
            })

    def _read_index(self) -> dict[str, Any]:
        index_file = self.root / "index.json"
        if not index_file.exists():
            return {"schemaVersion": INDEX_SCHEMA_VERSION, "manifests": []}
        return json.loads(index_file.read_bytes())

    def _write_index(self, index: dict[str, Any]) -> None:
        self._atomic_write(
            self.root / "index.json",
            json.dumps(index, indent=2, sort_keys=True).encode("utf-8"),
        )

    def tag_manifest(self, name: str, descriptor: dict[str, Any]) -> None:
        """Point ``name`` at a manifest, replacing any previous image of that name."""
        index = self._read_index()
        manifests = [
            m for m in index.get("manifests", [])
            if m.get("annotations", {}).get(REF_NAME_ANNOTATION) != name
        ]
        entry = dict(descriptor)
        entry["annotations"] = {REF_NAME_ANNOTATION: name}
        manifests.append(entry)
        index["manifests"] = manifests
        self._write_index(index)

    def image_names(self) -> list[str]:
        """Return the names of all saved images, sorted."""
        return sorted(
            m["annotations"][REF_NAME_ANNOTATION]
            for m in self._read_index().get("manifests", [])
            if REF_NAME_ANNOTATION in m.get("annotations", {})
        )

    def load(self, name: str) -> StoredImage:
        """Open a saved image for reading.

        Raises
        ------
        ImageNotFoundError
            If no image was saved under ``name``.
        """
        for descriptor in self._read_index().get("manifests", []):
            if descriptor.get("annotations", {}).get(REF_NAME_ANNOTATION) == name:
                manifest = json.loads(self.blob_path(descriptor["digest"]).read_bytes())
                config = json.loads(
                    self.blob_path(manifest["config"]["digest"]).read_bytes()
                )
                return StoredImage(self, name, descriptor["digest"], manifest, config)
        raise ImageNotFoundError(f"image not found in {self.root}: {name}")

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)


class LayoutImage:
    """``ImageHandle`` for an image being assembled in an ``OCILayoutStore``."""

    def __init__(self, store: OCILayoutStore, name: str) -> None:
        self._store = store
        self._name = name
        self._layers: list[dict[str, Any]] = []
        self._labels: dict[str, str] = {}
        self.saved = False

    @property
    def name(self) -> str:
        return self._name

    def add_layer(self, path: Path) -> None:
        try:
            digest, size = self._store.import_blob(Path(path))
        except OSError as exc:
            raise StoreError(f"unable to add layer {path} to {self._name}: {exc}") from exc
        self._layers.append({"mediaType": MEDIA_TYPE_LAYER, "digest": digest, "size": size})
        logger.debug("Added layer %s to %s", digest, self._name)

    def set_label(self, key: str, value: str) -> None:
        self._labels[key] = value

    def save(self) -> None:
        config = {
            "architecture": self._store.architecture,
            "os": self._store.os_name,
            "created": _CREATED,
            "config": {"Labels": dict(self._labels)},
            "rootfs": {
                "type": "layers",
                "diff_ids": [layer["digest"] for layer in self._layers],
            },
        }
        try:
            config_bytes = canonical_json_bytes(config)
            config_digest = self._store.write_blob(config_bytes)
            manifest = {
                "schemaVersion": 2,
                "mediaType": MEDIA_TYPE_MANIFEST,
                "config": {
                    "mediaType": MEDIA_TYPE_CONFIG,
                    "digest": config_digest,
                    "size": len(config_bytes),
                },
                "layers": list(self._layers),
            }
            manifest_bytes = canonical_json_bytes(manifest)
            manifest_digest = self._store.write_blob(manifest_bytes)
            self._store.tag_manifest(self._name, {
                "mediaType": MEDIA_TYPE_MANIFEST,
                "digest": manifest_digest,
                "size": len(manifest_bytes),
            })
        except OSError as exc:
            raise StoreError(f"unable to save image {self._name}: {exc}") from exc
        self.saved = True
        logger.info("Saved image %s (%s)", self._name, manifest_digest)


class StoredImage:
    """Read-only view of a saved image."""

    def __init__(
        self,
        store: OCILayoutStore,
        name: str,
        manifest_digest: str,
        manifest: dict[str, Any],
        config: dict[str, Any],
    ) -> None:
        self.store = store
        self.name = name
        self.manifest_digest = manifest_digest
        self.manifest = manifest
        self.config = config

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.config.get("config", {}).get("Labels") or {})

    @property
    def diff_ids(self) -> list[str]:
        return list(self.config.get("rootfs", {}).get("diff_ids", []))

    def label(self, key: str) -> str:
        try:
            return self.labels[key]
        except KeyError:
            raise KeyError(f"image {self.name} has no label {key!r}") from None

    def asset_metadata(self) -> AssetMetadata:
        """Decode the asset layers label."""
        return parse_label(self.label(MetadataAssembler.ASSET_LAYERS_LABEL))

    def layer_path(self, diff_id: str) -> Path:
        if diff_id not in self.diff_ids:
            raise KeyError(f"image {self.name} has no layer {diff_id}")
        return self.store.blob_path(diff_id)

    def find_layer_with_path(self, path: str) -> str | None:
        """Return the diff ID of the first layer containing ``path``."""
        wanted = _normalize_member(path)
        for diff_id in self.diff_ids:
            with tarfile.open(self.store.blob_path(diff_id), "r") as tf:
                if any(_normalize_member(n) == wanted for n in tf.getnames()):
                    return diff_id
        return None

    def read_asset(self, sha256: str) -> bytes:
        """Return the bytes of one cached asset, reading only its layer."""
        asset = self.asset_metadata()[sha256]
        wanted = _normalize_member(LayerPacker.asset_path(sha256))
        with tarfile.open(self.layer_path(asset.layer_diff_id), "r") as tf:
            for member in tf.getmembers():
                if member.isfile() and _normalize_member(member.name) == wanted:
                    fh = tf.extractfile(member)
                    if fh is not None:
                        return fh.read()
        raise KeyError(f"layer {asset.layer_diff_id} does not contain asset {sha256}")

    def verify_asset(self, sha256: str) -> bool:
        """Re-hash an asset's layer and compare it with the label's diff ID."""
        asset = self.asset_metadata().get(sha256)
        if asset is None or asset.layer_diff_id not in self.diff_ids:
            return False
        path = self.store.blob_path(asset.layer_diff_id)
        if not path.exists():
            return False
        return file_digest(path) == asset.layer_diff_id
