"""Locate output and scratch directories from the package's build metadata.

The generator writes into its own package: walking up from this file finds
the ``pyproject.toml`` that declares the package, and its
``[tool.qemu-plugin-sys]`` table names the source directory that receives
the generated modules::

    [tool.qemu-plugin-sys]
    source-dir = "qemu_plugin_sys"
    cache-dir = "build/tmp"

This only works from a source checkout or an editable install, which is the
only place regenerating bindings makes sense.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from qemu_plugin_sys.errors import ResolutionError
from qemu_plugin_sys.models.artifacts import BuildLayout

logger = logging.getLogger(__name__)

_TOOL_TABLE = "qemu-plugin-sys"
_DEFAULT_CACHE_DIR = Path("build") / "tmp"


def _normalize(name: str) -> str:
    return name.lower().replace("_", "-").replace(".", "-")


def _read_manifest(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ResolutionError(f"Cannot parse {path}: {exc}") from exc


def find_package_manifest(package_name: str, start: Path) -> tuple[Path, dict[str, Any]]:
    """Return the ``pyproject.toml`` declaring *package_name* above *start*."""
    start = Path(start).resolve()
    wanted = _normalize(package_name)
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if not candidate.is_file():
            continue
        data = _read_manifest(candidate)
        project = data.get("project", {})
        if isinstance(project, dict) and _normalize(str(project.get("name", ""))) == wanted:
            return candidate, data
    raise ResolutionError(
        f"Failed to find package {package_name!r} in any pyproject.toml above {start}"
    )


def resolve_build_layout(
    package_name: str,
    start: Path | None = None,
    cache_dir: Path | None = None,
) -> BuildLayout:
    """Resolve where generated files go and where the source cache lives.

    Parameters
    ----------
    package_name:
        ``[project].name`` to look for.
    start:
        Directory to search upward from; defaults to this package's directory.
    cache_dir:
        Scratch directory override. Relative paths resolve against the
        package root.
    """
    if start is None:
        start = Path(__file__).resolve().parent
    manifest, data = find_package_manifest(package_name, start)
    root = manifest.parent

    tool = data.get("tool", {}).get(_TOOL_TABLE, {})
    if not isinstance(tool, dict):
        raise ResolutionError(f"[tool.{_TOOL_TABLE}] in {manifest} must be a table")

    source_dir = root / str(tool.get("source-dir", package_name.replace("-", "_")))
    if not source_dir.is_dir():
        raise ResolutionError(
            f"Source directory {source_dir} declared by {manifest} does not exist"
        )

    scratch = Path(cache_dir or tool.get("cache-dir", _DEFAULT_CACHE_DIR))
    if not scratch.is_absolute():
        scratch = root / scratch

    logger.debug("Resolved package root %s (output=%s, scratch=%s)", root, source_dir, scratch)
    return BuildLayout(package_root=root, output_dir=source_dir, scratch_dir=scratch)
