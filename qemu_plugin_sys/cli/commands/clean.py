"""``qemu-plugin-sys clean``: evict cached archives and extracted trees.

This is the remedy for a corrupt or partial cache entry, since the cache
never re-validates what already exists.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.archive_cache import ArchiveCache
from qemu_plugin_sys.core.metadata import resolve_build_layout
from qemu_plugin_sys.core.version_registry import VersionRegistry
from qemu_plugin_sys.errors import BindgenError

console = Console()


def clean_cmd(
    revision: int = typer.Option(
        None,
        "--revision",
        "-r",
        help="Only evict this ordinal (default: every revision).",
    ),
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Scratch directory to clean.",
    ),
) -> None:
    """Remove cached source archives and trees."""
    settings = BindgenSettings()
    registry = VersionRegistry()
    try:
        layout = resolve_build_layout(
            settings.package_name, cache_dir=cache_dir or settings.cache_dir
        )
        targets = [registry.revision(revision)] if revision is not None else list(registry)
    except BindgenError as exc:
        console.print(f"[bold red]Clean failed:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    cache = ArchiveCache(layout.scratch_dir, settings.archive_url_template)
    removed = 0
    for target in targets:
        if cache.evict(target):
            removed += 1
            console.print(f"Evicted v{target.ordinal} [dim]({target.short_id})[/dim]")

    if removed:
        console.print(f"[green]Removed {removed} cached source(s) from {layout.scratch_dir}[/green]")
    else:
        console.print(f"[dim]Nothing cached in {layout.scratch_dir}[/dim]")
