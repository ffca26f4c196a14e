"""Rich terminal rendering for generation reports and the revision list.

Color scheme
------------
- green     : generated / cached
- red       : failed
- dim       : not cached
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from qemu_plugin_sys.models.artifacts import OutcomeStatus

if TYPE_CHECKING:
    from qemu_plugin_sys.core.archive_cache import ArchiveCache
    from qemu_plugin_sys.core.version_registry import VersionRegistry
    from qemu_plugin_sys.models.artifacts import RunReport


_STATUS_ICONS: dict[OutcomeStatus, str] = {
    OutcomeStatus.GENERATED: "[green]GENERATED[/green]",
    OutcomeStatus.FAILED: "[bold red]FAILED[/bold red]",
}


class ReportRenderer:
    """Renders run reports and registry listings as Rich tables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_report(self, report: RunReport) -> Table:
        table = Table(
            title="Generated plugin API bindings",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("API", style="dim", justify="right")
        table.add_column("Commit")
        table.add_column("Status", justify="center")
        table.add_column("Details")

        for outcome in report.outcomes:
            if outcome.status is OutcomeStatus.GENERATED:
                names = [p.name for p in (outcome.bindings_path, outcome.exports_path) if p]
                details = ", ".join(names)
                if outcome.bindings_digest:
                    details += f" [dim]{outcome.bindings_digest[:19]}[/dim]"
            else:
                details = f"[red]{outcome.error}[/red]"
            table.add_row(
                f"v{outcome.revision.ordinal}",
                outcome.revision.short_id,
                _STATUS_ICONS[outcome.status],
                details,
            )
        return table

    def print_report(self, report: RunReport) -> None:
        self.console.print(self.render_report(report))
        total = len(report.outcomes)
        if report.ok:
            self.console.print(f"[bold green]{total}/{total} revision(s) generated[/bold green]")
        else:
            self.console.print(
                f"[bold red]{len(report.failed)} of {total} revision(s) failed[/bold red]"
            )

    def render_versions(self, registry: VersionRegistry, cache: ArchiveCache | None = None) -> Table:
        table = Table(title="Tracked plugin API revisions", header_style="bold cyan")
        table.add_column("API", style="dim", justify="right")
        table.add_column("Commit")
        table.add_column("Note")
        table.add_column("Cached", justify="center")

        for revision in registry:
            if cache is None:
                cached = "[dim]?[/dim]"
            else:
                entry = cache.locate(revision)
                if entry.has_tree:
                    cached = "[green]tree[/green]"
                elif entry.has_archive:
                    cached = "[green]archive[/green]"
                else:
                    cached = "[dim]no[/dim]"
            table.add_row(
                f"v{revision.ordinal}", revision.source_identifier, revision.note, cached
            )
        return table

    def print_versions(self, registry: VersionRegistry, cache: ArchiveCache | None = None) -> None:
        self.console.print(self.render_versions(registry, cache))
