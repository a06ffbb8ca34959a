"""``assetcache inspect IMAGE`` — show (and optionally verify) a cache's assets."""

from __future__ import annotations

from pathlib import Path

import pydantic
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from assetcache.config import config
from assetcache.errors import AssetCacheError
from assetcache.store.oci_layout import OCILayoutStore

console = Console()


def inspect_cmd(
    image_name: str = typer.Argument(
        ...,
        help="Name of the asset cache image to inspect.",
    ),
    store_path: Path = typer.Option(
        config.store_path,
        "--store",
        "-s",
        help="Path to the local OCI image layout.",
    ),
    verify: bool = typer.Option(
        False,
        "--verify/--no-verify",
        help="Re-hash every asset layer against its recorded diff ID.",
    ),
) -> None:
    """List the assets recorded in an asset cache image."""
    try:
        image = OCILayoutStore(store_path).load(image_name)
        metadata = image.asset_metadata()
    except (AssetCacheError, KeyError, pydantic.ValidationError) as exc:
        console.print(f"[bold red]Cannot inspect {image_name}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    table = Table(title=f"Asset cache {image_name}")
    table.add_column("Sha256", style="cyan")
    table.add_column("ID")
    table.add_column("Version", style="green")
    table.add_column("Layer Diff ID", style="dim")
    if verify:
        table.add_column("Verified", justify="center")

    failed = 0
    for sha in sorted(metadata):
        asset = metadata[sha]
        row = [sha, asset.id, asset.version, asset.layer_diff_id]
        if verify:
            ok = image.verify_asset(sha)
            failed += 0 if ok else 1
            row.append("[green]Yes[/green]" if ok else "[red]No[/red]")
        table.add_row(*row)

    console.print(table)
    if failed:
        console.print(f"[bold red]{failed} asset layer(s) failed verification.[/bold red]")
        raise typer.Exit(code=1)
