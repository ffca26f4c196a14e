"""``qemu-plugin-sys versions``: list tracked plugin API revisions."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from qemu_plugin_sys.cli.report import ReportRenderer
from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.archive_cache import ArchiveCache
from qemu_plugin_sys.core.metadata import resolve_build_layout
from qemu_plugin_sys.core.version_registry import VersionRegistry
from qemu_plugin_sys.errors import ResolutionError

console = Console()


def versions_cmd(
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Scratch directory to report cache status for.",
    ),
) -> None:
    """Show each revision's ordinal, commit, release note and cache state."""
    settings = BindgenSettings()
    cache: ArchiveCache | None = None
    try:
        layout = resolve_build_layout(
            settings.package_name, cache_dir=cache_dir or settings.cache_dir
        )
        cache = ArchiveCache(layout.scratch_dir, settings.archive_url_template)
    except ResolutionError as exc:
        # Installed without a project checkout: cache status is unknown.
        console.print(f"[dim]{exc}[/dim]")

    ReportRenderer(console=console).print_versions(VersionRegistry(), cache)
