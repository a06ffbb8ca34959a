"""Buildpack inspection — turns a buildpack locator into asset descriptors.

The pull policy decides which sources are consulted and in what order:

=================  ==================
policy             inspection order
=================  ==================
``never``          local
``always``         remote, local
``if-not-present`` local, remote
=================  ==================

``try_inspect`` walks that plan and stops at the first source that knows
the buildpack.  Only "not found" moves on to the next source; any other
error ends the search.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import pydantic

from assetcache.core.dedup import deduplicate_assets
from assetcache.errors import BuildpackNotFoundError, ValidationError
from assetcache.models.assets import Asset
from assetcache.models.buildpacks import (
    BuildpackDescriptor,
    BuildpackInfo,
    InspectBuildpackOptions,
    PullPolicy,
)

logger = logging.getLogger(__name__)

BUILDPACK_TOML = "buildpack.toml"


@runtime_checkable
class BuildpackInspector(Protocol):
    """A source of buildpack descriptors."""

    def inspect(self, options: InspectBuildpackOptions) -> BuildpackInfo:
        """Return the buildpack named in ``options``.

        Raises ``BuildpackNotFoundError`` when this source does not have it.
        """
        ...


def inspection_plan(
    locator: str, policy: PullPolicy, registry: str = ""
) -> list[InspectBuildpackOptions]:
    """Return the ordered inspection options for a pull policy."""
    local = InspectBuildpackOptions(buildpack_name=locator, daemon=True, registry=registry)
    remote = InspectBuildpackOptions(buildpack_name=locator, daemon=False, registry=registry)
    if policy is PullPolicy.NEVER:
        return [local]
    if policy is PullPolicy.ALWAYS:
        return [remote, local]
    return [local, remote]


def try_inspect(
    inspector: BuildpackInspector, plan: Sequence[InspectBuildpackOptions]
) -> BuildpackInfo:
    """Return the first successful inspection in ``plan``.

    Raises
    ------
    BuildpackNotFoundError
        If every option in the plan reports the buildpack as missing.
    """
    for options in plan:
        try:
            return inspector.inspect(options)
        except BuildpackNotFoundError:
            logger.debug(
                "Buildpack %s not found (%s)",
                options.buildpack_name, "local" if options.daemon else "remote",
            )
            continue
    names = ", ".join(sorted({o.buildpack_name for o in plan})) or "<none>"
    raise BuildpackNotFoundError(f"no buildpack found for {names}")


def collect_assets(info: BuildpackInfo) -> tuple[Asset, ...]:
    """Flatten the assets of every buildpack in ``info`` into a unique, ordered set."""
    return deduplicate_assets(
        asset for buildpack in info.buildpacks for asset in buildpack.assets
    )


class DirectoryInspector:
    """Reads buildpacks from the local filesystem.

    A locator may name a ``buildpack.toml`` file, a directory holding one,
    or a directory whose immediate subdirectories each hold one (a
    composite buildpack).  Remote options are never served here.
    """

    def inspect(self, options: InspectBuildpackOptions) -> BuildpackInfo:
        if not options.daemon:
            raise BuildpackNotFoundError(
                f"remote inspection is not available for {options.buildpack_name}"
            )

        root = Path(options.buildpack_name)
        descriptor_files = self._descriptor_files(root)
        if not descriptor_files:
            raise BuildpackNotFoundError(
                f"no {BUILDPACK_TOML} found at {options.buildpack_name}"
            )
        return BuildpackInfo(
            location=str(root),
            buildpacks=[read_buildpack_toml(path) for path in descriptor_files],
        )

    @staticmethod
    def _descriptor_files(root: Path) -> list[Path]:
        if root.is_file():
            return [root] if root.name == BUILDPACK_TOML else []
        if not root.is_dir():
            return []
        top = root / BUILDPACK_TOML
        if top.is_file():
            return [top]
        return sorted(
            child / BUILDPACK_TOML
            for child in root.iterdir()
            if (child / BUILDPACK_TOML).is_file()
        )


def read_buildpack_toml(path: Path) -> BuildpackDescriptor:
    """Parse one ``buildpack.toml`` into a descriptor.

    Uses the ``[buildpack]`` table for identity and the top-level
    ``[[assets]]`` array for assets.
    """
    try:
        with open(path, "rb") as fh:
            data: dict[str, Any] = tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"invalid {path}: {exc}") from exc
    except OSError as exc:
        raise ValidationError(f"unable to read {path}: {exc}") from exc

    buildpack = data.get("buildpack", {})
    if not isinstance(buildpack, dict):
        raise ValidationError(f"invalid {path}: [buildpack] must be a table")
    assets = data.get("assets", [])
    if not isinstance(assets, list):
        raise ValidationError(f"invalid {path}: [[assets]] must be an array of tables")
    try:
        return BuildpackDescriptor(
            id=buildpack.get("id", ""),
            version=buildpack.get("version", ""),
            name=buildpack.get("name", ""),
            assets=assets,
        )
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid asset declaration in {path}: {exc}") from exc
