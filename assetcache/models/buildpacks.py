"""Buildpack inspection models — descriptors, pull policies, inspect options."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from assetcache.errors import ValidationError
from assetcache.models.assets import Asset


class PullPolicy(str, Enum):
    """Order in which local and remote buildpack sources are consulted."""

    ALWAYS = "always"
    NEVER = "never"
    IF_NOT_PRESENT = "if-not-present"

    @classmethod
    def parse(cls, value: str) -> PullPolicy:
        """Parse a user-supplied policy string.

        An empty string selects the default, ``always``.
        """
        if not value:
            return cls.ALWAYS
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            accepted = ", ".join(p.value for p in cls)
            raise ValidationError(
                f"invalid pull policy {value!r}; accepted values are {accepted}"
            ) from exc


class InspectBuildpackOptions(BaseModel):
    """One place to look for a buildpack.

    ``daemon`` selects the local source; otherwise the registry is used.
    """

    model_config = ConfigDict(frozen=True)

    buildpack_name: str
    daemon: bool = True
    registry: str = ""


class BuildpackDescriptor(BaseModel):
    """A single buildpack and the assets it declares."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: str = ""
    name: str = ""
    assets: list[Asset] = []


class BuildpackInfo(BaseModel):
    """Result of inspecting a buildpack locator.

    A composite buildpack yields several descriptors.
    """

    model_config = ConfigDict(frozen=True)

    location: str = ""
    buildpacks: list[BuildpackDescriptor] = []
