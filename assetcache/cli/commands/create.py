"""``assetcache create IMAGE`` — build an asset cache image from a buildpack.

Inspects the buildpack named by ``--buildpack`` according to the pull
policy, collects the assets it declares, and writes one layer per unique
asset into IMAGE in the local image store.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from assetcache.buildpacks import DirectoryInspector, collect_assets, inspection_plan, try_inspect
from assetcache.config import CacheSettings, config
from assetcache.core.builder import CacheBuilder
from assetcache.errors import AssetCacheError
from assetcache.models.buildpacks import PullPolicy
from assetcache.models.image import CreateAssetCacheOptions
from assetcache.store.oci_layout import OCILayoutStore

console = Console()


def create_cmd(
    image_name: str = typer.Argument(
        ...,
        help="Name of the asset cache image to create.",
    ),
    buildpack: str = typer.Option(
        "",
        "--buildpack",
        "-b",
        help="Buildpack locator (a directory or buildpack.toml).",
    ),
    pull_policy: str = typer.Option(
        config.pull_policy.value,
        "--pull-policy",
        help="Pull policy to use. Accepted values are always, never, and if-not-present.",
    ),
    registry: str = typer.Option(
        config.buildpack_registry,
        "--buildpack-registry",
        "-R",
        help="Buildpack registry by name.",
    ),
    store_path: Path = typer.Option(
        config.store_path,
        "--store",
        "-s",
        help="Path to the local OCI image layout.",
    ),
) -> None:
    """Build an asset cache image using the specified buildpack."""
    if not buildpack:
        console.print(
            "[bold red]must specify a buildpack locator using the --buildpack flag[/bold red]"
        )
        raise typer.Exit(code=1)

    try:
        policy = PullPolicy.parse(pull_policy)
        info = try_inspect(DirectoryInspector(), inspection_plan(buildpack, policy, registry))
        assets = collect_assets(info)

        settings = CacheSettings(store_path=store_path)
        builder = CacheBuilder(OCILayoutStore(store_path), settings=settings)
        result = builder.build(
            CreateAssetCacheOptions(image_name=image_name, assets=list(assets))
        )
    except AssetCacheError as exc:
        console.print(f"[bold red]Asset cache creation failed:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    table = Table(title="Cached Assets")
    table.add_column("ID", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Sha256")
    table.add_column("Layer Diff ID", style="dim")
    for asset in result.assets:
        table.add_row(asset.id, asset.version, asset.sha256, asset.layer_diff_id)

    console.print()
    console.print(table)
    console.print(
        Panel(
            "\n".join([
                "[bold green]Asset cache created![/bold green]",
                "",
                f"[bold]Image:[/bold]  {result.image_name}",
                f"[bold]Assets:[/bold] {len(result.assets)}",
                f"[bold]Store:[/bold]  {store_path}",
            ]),
            title="[bold]assetcache[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
