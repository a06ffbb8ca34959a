"""Image name validation for tag references.

Accepted shape: ``[registry/]repository[:tag]``.  The registry is only
recognised when the first path component looks like a host (contains
``.`` or ``:``, or is ``localhost``).  A missing or empty tag (``repo`` or
``repo:``) means ``latest``.  Digest references are rejected; an asset
cache is always written under a tag.
"""

from __future__ import annotations

import re

from assetcache.errors import ValidationError
from assetcache.models.image import ImageReference

DEFAULT_TAG = "latest"
MAX_REPOSITORY_LENGTH = 255

_TAG_RE = re.compile(r"^\w[\w.-]{0,127}$", re.ASCII)
_REPO_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_REGISTRY_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]*[A-Za-z0-9])?(?::[0-9]+)?$")


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_image_reference(name: str) -> ImageReference:
    """Validate ``name`` as a tag reference and return its parts.

    Raises
    ------
    ValidationError
        If any part of the name breaks the naming rules.
    """
    if not name:
        raise ValidationError("image name must not be empty")
    if "@" in name:
        raise ValidationError(f"digest references are not supported: {name!r}")

    base, sep, tag = name.rpartition(":")
    if not sep or "/" in tag:
        base, tag = name, ""
    elif tag and not _TAG_RE.match(tag):
        raise ValidationError(
            f"tag {tag!r} can only contain [a-zA-Z0-9_.-] "
            "and must not start with '.' or '-'"
        )

    registry = ""
    repository = base
    first, slash, rest = base.partition("/")
    if slash and _looks_like_registry(first):
        registry, repository = first, rest
        if not _REGISTRY_RE.match(registry):
            raise ValidationError(f"registry {registry!r} is not a valid host[:port]")

    if not repository:
        raise ValidationError(f"repository must not be empty in {name!r}")
    if len(repository) > MAX_REPOSITORY_LENGTH:
        raise ValidationError(
            f"repository can not be longer than {MAX_REPOSITORY_LENGTH} characters"
        )
    for component in repository.split("/"):
        if not _REPO_COMPONENT_RE.match(component):
            raise ValidationError(
                f"repository {repository!r} can only contain lowercase "
                "alphanumerics separated by '.', '_', '__', '-' and '/'"
            )

    return ImageReference(
        original=name,
        registry=registry,
        repository=repository,
        tag=tag or DEFAULT_TAG,
    )
