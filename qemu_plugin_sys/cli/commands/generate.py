"""``qemu-plugin-sys generate``: regenerate bindings for every revision.

Fetches (or reuses) each revision's QEMU snapshot, patches the plugin
header, writes ``bindings_v{N}.py`` and ``qemu_plugin_api_v{N}.def`` into
the package, and prints a per-revision report.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from qemu_plugin_sys.cli.report import ReportRenderer
from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.pipeline import Pipeline
from qemu_plugin_sys.errors import BindgenError

console = Console()


def generate_cmd(
    refresh: bool = typer.Option(
        False,
        "--refresh",
        help="Discard cached archives and trees before generating.",
    ),
    keep_going: bool = typer.Option(
        None,
        "--keep-going/--fail-fast",
        help="Continue past failed revisions and report them at the end.",
    ),
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Scratch directory for archives (defaults to build/tmp in the project).",
    ),
) -> None:
    """Generate bindings and export tables for all tracked revisions.

    Without ``--keep-going`` the first failing revision aborts the run.
    """
    overrides: dict[str, object] = {}
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir
    if keep_going is not None:
        overrides["keep_going"] = keep_going
    settings = BindgenSettings(**overrides)

    pipeline = Pipeline(settings)
    try:
        report = pipeline.run_all(refresh=refresh)
    except (BindgenError, OSError) as exc:
        console.print(f"[bold red]Generation failed:[/bold red] {exc}")
        console.print(
            "[dim]A corrupt cached archive needs: qemu-plugin-sys generate --refresh[/dim]"
        )
        raise typer.Exit(code=1) from exc

    ReportRenderer(console=console).print_report(report)
    if not report.ok:
        raise typer.Exit(code=1)
