"""Subcommands registered on the ``qemu-plugin-sys`` Typer app."""
