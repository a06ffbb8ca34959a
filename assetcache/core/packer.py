"""Layer packing — one normalized tar layer per asset.

Layer layout (order is significant for byte-identical output)::

    cnb/                    directory, 0755
    cnb/assets/             directory, 0755
    /cnb/assets/<sha256>    regular file, 0755, the asset bytes

Every entry carries the same fixed mtime, mode and zero ownership, so
packing the same bytes always yields the same tar stream and therefore
the same diff ID.  The diff ID is the SHA-256 of the uncompressed tar
stream, computed while the stream is written.

``tarfile`` pads the stream to a full 10240-byte record after the
end-of-archive blocks, so diff IDs are stable across runs but differ from
those of tar writers that stop at the end-of-archive marker.
"""

from __future__ import annotations

import io
import logging
import tarfile
from datetime import datetime, timezone
from pathlib import Path

from assetcache.core.fetcher import AssetBlob
from assetcache.core.hasher import HashingWriter
from assetcache.errors import AssetCacheError, PackError
from assetcache.models.image import PackedLayer

logger = logging.getLogger(__name__)


class LayerPacker:
    """Serializes asset blobs into layer files under a working directory.

    Parameters
    ----------
    workdir:
        Directory that receives one ``<content_hash>`` tar file per asset.
    """

    ROOT_DIR = "cnb"
    ASSETS_DIR = "cnb/assets"
    ASSET_PATH_PREFIX = "/cnb/assets"
    LAYER_MODE = 0o755
    NORMALIZED_DATETIME = datetime(1980, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    NORMALIZED_MTIME = int(NORMALIZED_DATETIME.timestamp())

    def __init__(self, workdir: Path) -> None:
        self._workdir = Path(workdir)

    @classmethod
    def asset_path(cls, content_hash: str) -> str:
        """In-image path of the file holding the asset with ``content_hash``."""
        return f"{cls.ASSET_PATH_PREFIX}/{content_hash}"

    def pack(self, blob: AssetBlob, content_hash: str) -> PackedLayer:
        """Write the layer for one asset and return its path and diff ID.

        The blob is opened, read fully into memory, and closed before the
        tar stream is written.
        """
        if not content_hash or "/" in content_hash:
            raise PackError(
                f"invalid content hash {content_hash!r} for layer", sha256=content_hash
            )

        try:
            with blob.open() as rc:
                data = rc.read()
        except (OSError, ValueError, AssetCacheError) as exc:
            raise PackError(
                f"unable to read asset blob {blob!r}: {exc}", sha256=content_hash
            ) from exc

        layer_path = self._workdir / content_hash
        try:
            with open(layer_path, "wb") as dst:
                writer = HashingWriter(dst)
                self._write_tar(writer, content_hash, data)
        except (OSError, ValueError, tarfile.TarError) as exc:
            raise PackError(
                f"unable to write layer {layer_path}: {exc}", sha256=content_hash
            ) from exc

        diff_id = writer.digest()
        logger.debug(
            "Packed %s (%d bytes) into %s as %s",
            content_hash, len(data), layer_path, diff_id,
        )
        return PackedLayer(
            path=layer_path, diff_id=diff_id, size_bytes=writer.bytes_written
        )

    # ------------------------------------------------------------------
    # Tar layout
    # ------------------------------------------------------------------

    def _header(self, name: str, entry_type: bytes, size: int = 0) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name)
        info.type = entry_type
        info.mode = self.LAYER_MODE
        info.mtime = self.NORMALIZED_MTIME
        info.size = size
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        return info

    def _write_tar(self, writer: HashingWriter, content_hash: str, data: bytes) -> None:
        # "w|" streams straight through the writer without seeking back.
        with tarfile.open(fileobj=writer, mode="w|", format=tarfile.USTAR_FORMAT) as tw:
            tw.addfile(self._header(self.ROOT_DIR, tarfile.DIRTYPE))
            tw.addfile(self._header(self.ASSETS_DIR, tarfile.DIRTYPE))
            tw.addfile(
                self._header(self.asset_path(content_hash), tarfile.REGTYPE, len(data)),
                io.BytesIO(data),
            )
