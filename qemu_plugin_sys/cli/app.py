"""Main Typer application, imports and registers all CLI commands.

Entry point: ``qemu-plugin-sys`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from qemu_plugin_sys.cli.commands.clean import clean_cmd
from qemu_plugin_sys.cli.commands.generate import generate_cmd
from qemu_plugin_sys.cli.commands.versions import versions_cmd
from qemu_plugin_sys.config import BindgenSettings

app = typer.Typer(
    name="qemu-plugin-sys",
    help="Generate ctypes bindings for every QEMU plugin API revision.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="generate", help="Fetch sources and generate bindings for all revisions.")(
    generate_cmd
)
app.command(name="versions", help="List tracked plugin API revisions.")(versions_cmd)
app.command(name="clean", help="Remove cached source archives and trees.")(clean_cmd)


def configure_logging(level: str) -> None:
    """Route the root logger through Rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to QEMU_PLUGIN_SYS_LOG_LEVEL or INFO).",
    ),
) -> None:
    """qemu-plugin-sys: multi-version QEMU plugin API bindings."""
    configure_logging(log_level or BindgenSettings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
