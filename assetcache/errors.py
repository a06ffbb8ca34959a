"""Error taxonomy for asset cache builds.

Every failure that can end a build is an ``AssetCacheError``.  The
subclass names the failing concern; the optional ``asset_id``, ``sha256``
and ``step`` attributes carry enough context to diagnose the failure
without access to builder internals.  None of these errors are retried.
"""

from __future__ import annotations


class AssetCacheError(RuntimeError):
    """Base class for all build failures.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    asset_id:
        ID of the asset being processed, if any.
    sha256:
        Content hash of the asset being processed, if any.
    step:
        Build step that failed (``"validate"``, ``"fetch"``, ``"pack"`` ...).
    """

    default_step = "build"

    def __init__(
        self,
        message: str,
        *,
        asset_id: str | None = None,
        sha256: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message)
        self.asset_id = asset_id
        self.sha256 = sha256
        self.step = step or self.default_step

    def __str__(self) -> str:
        message = super().__str__()
        context = [
            f"{label}={value}"
            for label, value in (("asset", self.asset_id), ("sha256", self.sha256))
            if value
        ]
        if context:
            return f"{message} [{self.step}: {', '.join(context)}]"
        return message


class ValidationError(AssetCacheError):
    """Raised for invalid input detected before any I/O (e.g. a bad image name)."""

    default_step = "validate"


class FetchError(AssetCacheError):
    """Raised when an asset source cannot be retrieved."""

    default_step = "fetch"


class PackError(AssetCacheError):
    """Raised when a layer file cannot be created, written, or hashed."""

    default_step = "pack"


class ConsistencyError(AssetCacheError):
    """Raised when an internal invariant of the build is broken."""

    default_step = "consistency"


class StoreError(AssetCacheError):
    """Raised when the image store fails to create, extend, label, or save an image."""

    default_step = "store"


class BuildpackNotFoundError(AssetCacheError, LookupError):
    """Raised when no inspection source knows the requested buildpack."""

    default_step = "inspect"


class ImageNotFoundError(AssetCacheError, LookupError):
    """Raised when the image store has no image under the requested name."""

    default_step = "load"
