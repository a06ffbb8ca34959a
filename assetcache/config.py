"""Runtime configuration — env-driven.

Reads from a .env file and ASSETCACHE_* environment variables.  The CLI
takes its option defaults from the module-level ``config`` instance.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from assetcache.models.buildpacks import PullPolicy


class CacheSettings(BaseSettings):
    """Asset cache configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export ASSETCACHE_LOG_LEVEL=DEBUG
        export ASSETCACHE_STORE_PATH=/data/images
        export ASSETCACHE_PULL_POLICY=if-not-present
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ASSETCACHE_",
        env_file_encoding="utf-8",
    )

    log_level: str = "INFO"

    # Storage paths
    store_path: Path = Path(".assetcache/images")
    scratch_root: Path | None = None  # None -> system temp directory

    # Buildpack inspection
    pull_policy: PullPolicy = PullPolicy.ALWAYS
    buildpack_registry: str = ""

    # Fetching
    fetch_timeout_seconds: int = 60


# Module-level singleton: import as `from assetcache.config import config`
config = CacheSettings()
