"""assetcache CLI — Typer-based command-line interface.

Provides the ``assetcache`` command with subcommands for creating an
asset cache image from a buildpack and inspecting an existing one.

All output uses Rich for formatted terminal display.
"""
