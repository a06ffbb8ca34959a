"""Asset fetching — resolves an asset URI to a readable blob.

Local sources (``file://`` URIs and bare paths) are read in place.
``http``/``https`` sources are downloaded with ``requests`` into the
build's working directory, which the builder removes when the build ends.
There is no caching and no retry: any failure is a ``FetchError``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from assetcache.core.hasher import sha256_hex
from assetcache.errors import FetchError

logger = logging.getLogger(__name__)

_DOWNLOAD_CHUNK_SIZE = 64 * 1024
_DOWNLOADS_DIR = "downloads"


@runtime_checkable
class AssetBlob(Protocol):
    """A readable source of an asset's raw bytes.

    ``open()`` returns a binary file object usable as a context manager.
    The caller owns the returned handle and must close it.
    """

    def open(self) -> BinaryIO:
        ...


class FileBlob:
    """An asset blob backed by a file on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def open(self) -> BinaryIO:
        return open(self.path, "rb")

    def __repr__(self) -> str:
        return f"FileBlob({str(self.path)!r})"


@runtime_checkable
class AssetFetcher(Protocol):
    """Resolves one asset URI to an ``AssetBlob``.

    ``workdir`` is the build's scratch directory; fetchers that need to
    materialize content must write it there.
    """

    def fetch(self, uri: str, workdir: Path) -> AssetBlob:
        ...


class URIFetcher:
    """Default fetcher for local paths, ``file://`` and ``http(s)://`` URIs.

    Parameters
    ----------
    timeout:
        Seconds to wait on the remote server for each HTTP read.
    session:
        Optional ``requests.Session`` to reuse connections or inject headers.
    """

    def __init__(
        self,
        timeout: float = 60,
        session: requests.Session | None = None,
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, uri: str, workdir: Path) -> AssetBlob:
        parsed = urlparse(uri)
        scheme = parsed.scheme.lower()

        # A one-letter scheme is a Windows drive ("C:\\..."), not a URI.
        if scheme in ("", "file") or len(scheme) == 1:
            path = Path(url2pathname(parsed.path)) if scheme == "file" else Path(uri)
            return self._local_blob(uri, path)
        if scheme in ("http", "https"):
            return self._download(uri, Path(workdir))
        raise FetchError(f"unsupported asset URI scheme {scheme!r}: {uri}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _local_blob(uri: str, path: Path) -> FileBlob:
        if not path.is_file():
            raise FetchError(f"asset file not found: {uri}")
        if not os.access(path, os.R_OK):
            raise FetchError(f"asset file is not readable: {uri}")
        logger.debug("Using local asset %s", path)
        return FileBlob(path)

    def _download(self, uri: str, workdir: Path) -> FileBlob:
        target_dir = workdir / _DOWNLOADS_DIR
        target = target_dir / sha256_hex(uri.encode("utf-8"))
        logger.debug("Downloading %s to %s", uri, target)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with self._session.get(uri, stream=True, timeout=self._timeout) as response:
                response.raise_for_status()
                with open(target, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK_SIZE):
                        fh.write(chunk)
        except requests.RequestException as exc:
            raise FetchError(f"unable to download asset from {uri}: {exc}") from exc
        except OSError as exc:
            raise FetchError(f"unable to store download of {uri}: {exc}") from exc
        return FileBlob(target)
