"""Image store protocol — the boundary between the builder and image storage.

The builder only ever creates an image, appends layer files, sets string
labels, and saves.  Any backend that implements ``ImageStore`` and
``ImageHandle`` can receive an asset cache; ``OCILayoutStore`` writes an
OCI image layout on local disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class ImageHandle(Protocol):
    """A mutable, not-yet-persisted image owned by one build."""

    @property
    def name(self) -> str:
        """The image name this handle will be saved under."""
        ...

    def add_layer(self, path: Path) -> None:
        """Append the uncompressed tar at ``path`` as the next layer."""
        ...

    def set_label(self, key: str, value: str) -> None:
        """Set a config label on the image."""
        ...

    def save(self) -> None:
        """Persist the image under its name."""
        ...


@runtime_checkable
class ImageStore(Protocol):
    """Creates image handles."""

    def new_image(self, name: str, local: bool = True) -> ImageHandle:
        """Return a fresh, empty image handle named ``name``.

        ``local`` selects local storage; remote creation is not supported
        by the bundled store.
        """
        ...
